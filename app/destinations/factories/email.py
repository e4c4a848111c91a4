"""SMTP email relay factory.

Sessions are cached per (host, port, method, credentials id) and reused
across messages. An SMTP connection is not safe for concurrent use, so each
SmtpSession serializes sends with its own lock; different relays send in
parallel.
"""

import smtplib
import ssl
import threading
import time
from email.message import EmailMessage as MimeMessage
from typing import Dict, Hashable, Mapping, Optional, Tuple

from destinations.configuration import EmailCredentials
from destinations.errors import ClientConstructionError
from destinations.factories.base import CachingDestinationFactory
from destinations.logging import get_module_logger
from destinations.models import (
    DestinationResponse,
    DestinationType,
    EmailMessage,
    EmailMethod,
)

logger = get_module_logger()

SMTP_OK = 250
MAX_PORT = 65535


class SmtpSession:
    """Lazily connected, reusable SMTP connection.

    The connection is opened on the first send and kept for later ones. A
    connection that timed out or was dropped by the server is discarded and
    the error re-raised; the next send reconnects.

    Args:
        host: SMTP relay host
        port: SMTP relay port
        method: Connection security (plain, implicit TLS or STARTTLS)
        credentials: Login used after connecting, if any
    """

    def __init__(
        self,
        host: str,
        port: int,
        method: EmailMethod = EmailMethod.NONE,
        credentials: Optional[EmailCredentials] = None,
    ):
        self.host = host
        self.port = port
        self.method = method
        self._credentials = credentials
        self._smtp: Optional[smtplib.SMTP] = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._smtp is not None

    def send(
        self, mime_message: MimeMessage, timeout: float
    ) -> Dict[str, Tuple[int, bytes]]:
        """Send mime_message, connecting first if needed.

        Time spent waiting for another thread's send counts against timeout.

        Returns:
            Recipients the server refused, mapped to (code, reply)

        Raises:
            TimeoutError: If the session stayed busy for the whole timeout
        """
        deadline = time.monotonic() + timeout
        if not self._lock.acquire(timeout=timeout):
            raise TimeoutError(
                f"SMTP session {self.host}:{self.port} busy for {timeout}s"
            )
        try:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(
                    f"SMTP session {self.host}:{self.port} busy for {timeout}s"
                )

            if self._smtp is None:
                self._smtp = self._connect(remaining)
            else:
                self._smtp.timeout = remaining
                if self._smtp.sock is not None:
                    self._smtp.sock.settimeout(remaining)

            try:
                return self._smtp.send_message(mime_message)
            except (smtplib.SMTPServerDisconnected, OSError):
                self._discard()
                raise
        finally:
            self._lock.release()

    def close(self) -> None:
        """Quit the SMTP session if one is open."""
        with self._lock:
            smtp, self._smtp = self._smtp, None
        if smtp is None:
            return
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError):
            smtp.close()

    def _connect(self, timeout: float) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.method is EmailMethod.SSL:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host, self.port, timeout=timeout, context=context
            )
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=timeout)

        try:
            if self.method is EmailMethod.STARTTLS:
                smtp.starttls(context=context)
            if self._credentials is not None:
                smtp.login(
                    self._credentials.username,
                    self._credentials.password.get_secret_value(),
                )
        except Exception:
            smtp.close()
            raise

        logger.debug(
            "smtp_session_connected",
            host=self.host,
            port=self.port,
            method=self.method.value,
        )
        return smtp

    def _discard(self) -> None:
        smtp, self._smtp = self._smtp, None
        if smtp is not None:
            smtp.close()


class EmailFactory(CachingDestinationFactory[EmailMessage, SmtpSession]):
    """Relays messages through SMTP servers.

    Messages reference credentials by id; the factory resolves the id against
    the credentials store it was constructed with.

    Args:
        credentials: Named SMTP logins
        **kwargs: Passed to CachingDestinationFactory

    Example:
        factory = EmailFactory(
            credentials={"ops-relay": EmailCredentials(username="ops",
                                                       password="...")}
        )
        factory.publish(
            EmailMessage(host="smtp.example.com", port=587,
                         method=EmailMethod.STARTTLS,
                         credentials_id="ops-relay",
                         from_address="alerts@example.com",
                         recipients=["oncall@example.com"],
                         content="Monitor triggered")
        )
    """

    destination_type = DestinationType.EMAIL
    message_class = EmailMessage

    def __init__(
        self,
        credentials: Optional[Mapping[str, EmailCredentials]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._credentials: Dict[str, EmailCredentials] = dict(credentials or {})

    def client_key(self, message: EmailMessage) -> Hashable:
        host = message.host.strip().lower()
        if not host:
            raise ClientConstructionError(
                "SMTP host is required", destination_type=self.destination_type
            )
        if not 0 < message.port <= MAX_PORT:
            raise ClientConstructionError(
                f"Invalid SMTP port: {message.port}",
                destination_type=self.destination_type,
            )
        self._resolve_credentials(message)
        return (host, message.port, message.method, message.credentials_id)

    def _resolve_credentials(self, message: EmailMessage) -> Optional[EmailCredentials]:
        if message.credentials_id is None:
            return None
        if not message.credentials_id.strip():
            raise ClientConstructionError(
                "Email credentials id cannot be blank",
                destination_type=self.destination_type,
            )
        credentials = self._credentials.get(message.credentials_id)
        if credentials is None:
            raise ClientConstructionError(
                f"Unknown email credentials: {message.credentials_id}",
                destination_type=self.destination_type,
            )
        return credentials

    def _build_client(self, message: EmailMessage) -> SmtpSession:
        return SmtpSession(
            host=message.host.strip(),
            port=message.port,
            method=message.method,
            credentials=self._resolve_credentials(message),
        )

    def _send(
        self, client: SmtpSession, message: EmailMessage, timeout: float
    ) -> DestinationResponse:
        refused = client.send(self.build_mime_message(message), timeout)
        if refused:
            logger.warning(
                "email_recipients_refused",
                destination_name=message.destination_name,
                refused_count=len(refused),
                recipient_count=len(message.recipients),
            )
            first_code = next(iter(refused.values()))[0]
            return DestinationResponse.failed(
                self.destination_type,
                first_code,
                f"Recipients refused: {', '.join(sorted(refused))}",
                error_code="RECIPIENTS_REFUSED",
            )

        logger.info(
            "email_sent",
            destination_name=message.destination_name,
            recipient_count=len(message.recipients),
        )
        return DestinationResponse.sent(
            self.destination_type,
            SMTP_OK,
            f"Sent email to {len(message.recipients)} recipient(s)",
        )

    @staticmethod
    def build_mime_message(message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["Subject"] = message.subject
        mime["From"] = message.from_address
        mime["To"] = ", ".join(message.recipients)
        mime.set_content(message.content)
        return mime
