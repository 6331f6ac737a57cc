"""Builders for the PKCS12 keystore of a mutual TLS Kafka client, from the
KafkaUser's CA certificate, certificate, and key.
"""

from __future__ import annotations

__all__ = (
    "CryptographyKeystoreBuilder",
    "KeystoreBuilder",
    "OpenSSLKeystoreBuilder",
    "generate_password",
    "get_keystore_builder",
)

import secrets
import string
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Protocol

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    load_pem_private_key,
    pkcs12,
)

from strimziclientprovisioner import config
from strimziclientprovisioner.errors import ArtifactBuildFailure


class KeystoreBuilder(Protocol):
    """Writes a password-protected PKCS12 keystore holding a client
    certificate, its private key, and the CA chain.
    """

    def build_keystore(
        self,
        *,
        ca_cert: str,
        user_cert: str,
        user_key: str,
        password: str,
        output_path: Path,
        alias: str,
    ) -> Path: ...


class CryptographyKeystoreBuilder:
    """Build keystores in-process with the ``cryptography`` package."""

    def build_keystore(
        self,
        *,
        ca_cert: str,
        user_cert: str,
        user_key: str,
        password: str,
        output_path: Path,
        alias: str,
    ) -> Path:
        """Create a PKCS12 keystore using the client's CA certificate,
        certificate, and key.

        Parameters
        ----------
        ca_cert : `str`
            The PEM content of the KafkaUser's CA certificate (``ca.crt``).
            May hold several certificates.
        user_cert : `str`
            The PEM content of the KafkaUser's certificate (``user.crt``).
            Certificates following the first are added to the chain.
        user_key : `str`
            The PEM content of the KafkaUser's private key (``user.key``).
        password : `str`
            Password to protect the keystore with.
        output_path : `pathlib.Path`
            Where to write the keystore.
        alias : `str`
            Friendly name of the key entry.

        Returns
        -------
        path : `pathlib.Path`
            The ``output_path``.

        Raises
        ------
        strimziclientprovisioner.errors.ArtifactBuildFailure
            Raised if the certificates or key cannot be parsed.
        """
        try:
            cas = x509.load_pem_x509_certificates(ca_cert.encode("utf-8"))
            user_chain = x509.load_pem_x509_certificates(
                user_cert.encode("utf-8")
            )
            key = load_pem_private_key(user_key.encode("utf-8"), password=None)
            content = pkcs12.serialize_key_and_certificates(
                name=alias.encode("utf-8"),
                key=key,
                cert=user_chain[0],
                cas=user_chain[1:] + cas,
                encryption_algorithm=BestAvailableEncryption(
                    password.encode("utf-8")
                ),
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ArtifactBuildFailure(
                f"Could not build the keystore for {alias}: {e}"
            ) from e

        output_path.write_bytes(content)
        return output_path


class OpenSSLKeystoreBuilder:
    """Build keystores with the :command:`openssl pkcs12` command.

    Parameters
    ----------
    executable : `str`, optional
        The openssl command. Defaults to
        `strimziclientprovisioner.config.openssl_executable`.
    logger : optional
        Logger for the command's output.
    """

    def __init__(
        self, executable: str | None = None, logger: Any | None = None
    ) -> None:
        self.executable = executable or config.openssl_executable
        self.logger = logger or structlog.getLogger(__name__)

    def build_keystore(
        self,
        *,
        ca_cert: str,
        user_cert: str,
        user_key: str,
        password: str,
        output_path: Path,
        alias: str,
    ) -> Path:
        """Create a PKCS12 keystore using the client's CA certificate,
        certificate, and key.

        The PEM inputs are written to a temporary directory that is removed
        once :command:`openssl` returns.

        Raises
        ------
        strimziclientprovisioner.errors.ArtifactBuildFailure
            Raised if :command:`openssl` is not found, results in a non-zero
            exit status, or does not generate the keystore.
        """
        with tempfile.TemporaryDirectory() as tempdirname:
            tempdir = Path(tempdirname)

            ca_cert_path = tempdir / "ca.crt"
            ca_cert_path.write_text(ca_cert)

            user_cert_path = tempdir / "user.crt"
            user_cert_path.write_text(user_cert)

            user_key_path = tempdir / "user.key"
            user_key_path.write_text(user_key)

            openssl_args = [
                self.executable,
                "pkcs12",
                "-export",
                "-in",
                str(user_cert_path),
                "-inkey",
                str(user_key_path),
                "-chain",
                "-CAfile",
                str(ca_cert_path),
                "-name",
                alias,
                "-passout",
                f"pass:{password}",
                "-out",
                str(output_path),
            ]
            try:
                result = subprocess.run(
                    args=openssl_args, capture_output=True, check=True
                )
            except FileNotFoundError as e:
                raise ArtifactBuildFailure(
                    f"{self.executable} is not installed"
                ) from e
            except subprocess.CalledProcessError as e:
                self._log_result(e.cmd, e.returncode, e.stdout, e.stderr)
                raise ArtifactBuildFailure(
                    f"{self.executable} pkcs12 exited with status "
                    f"{e.returncode}"
                ) from e

        if not output_path.is_file():
            self._log_result(
                result.args, result.returncode, result.stdout, result.stderr
            )
            raise ArtifactBuildFailure(
                f"keystore not generated by {self.executable}"
            )
        return output_path

    def _log_result(
        self,
        args: list[str],
        returncode: int,
        stdout: bytes | None,
        stderr: bytes | None,
    ) -> None:
        """Log the result of a subprocess.run call for debugging.

        The password argument is masked.
        """
        args = [
            "pass:****" if arg.startswith("pass:") else arg for arg in args
        ]
        command = args[0]
        self.logger.debug(f"{command} status: {returncode}")
        self.logger.debug(f"{command} args: {' '.join(args)}")
        out = (stdout or b"").decode("utf-8", errors="replace")
        err = (stderr or b"").decode("utf-8", errors="replace")
        self.logger.debug(f"{command} stdout:\n{out}")
        self.logger.debug(f"{command} stderr:\n{err}")


def get_keystore_builder(
    name: str | None = None, *, logger: Any | None = None
) -> KeystoreBuilder:
    """Get a keystore builder by name.

    Parameters
    ----------
    name : `str`, optional
        ``cryptography`` or ``openssl``. Defaults to
        `strimziclientprovisioner.config.keystore_builder`.
    logger : optional
        Logger passed on to builders that log.
    """
    if name is None:
        name = config.keystore_builder
    if name == "cryptography":
        return CryptographyKeystoreBuilder()
    elif name == "openssl":
        return OpenSSLKeystoreBuilder(logger=logger)
    else:
        raise ValueError(
            f"Unknown keystore builder {name!r}, expected cryptography or "
            "openssl"
        )


def generate_password() -> str:
    """Generate a random password."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for i in range(24))
