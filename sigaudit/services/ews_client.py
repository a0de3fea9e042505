"""Client for the legacy mailbox signature store (EWS OWA.UserOptions).

Signatures written by modern clients live in storage EWS cannot reach. An
accessible mailbox with no legacy options is therefore a normal outcome and
reported as accessible with no html.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from xml.sax.saxutils import escape, quoteattr

import httpx
import structlog

from sigaudit.errors import AuthenticationError, MailboxClientError
from sigaudit.schemas.profile import MailboxSignature
from sigaudit.services.auth import ClientCredentialsToken
from sigaudit.services.html_text import html_to_text

logger = structlog.get_logger()

SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
TYPES_NS = "http://schemas.microsoft.com/exchange/services/2006/types"
MESSAGES_NS = "http://schemas.microsoft.com/exchange/services/2006/messages"

USER_OPTIONS = "OWA.UserOptions"
SERVER_VERSION = "Exchange2016"

ACCESS_DENIED_CODES = frozenset({"ErrorAccessDenied", "ErrorImpersonateUserDenied", "ErrorImpersonationDenied"})
ITEM_NOT_FOUND = "ErrorItemNotFound"

ACCESS_DENIED_MESSAGE = "Access denied. Ensure the app has ApplicationImpersonation role in Exchange."
UNREADABLE_MESSAGE = (
    "Signatures in new Outlook are stored in cloud-only format and cannot be read via API. "
    "Use 'Deploy Signature' to set a standardized signature."
)


@dataclass
class DictionaryEntry:
    """One typed key/value pair of a user configuration dictionary."""

    key: str
    value_type: str | None = None
    values: list[str] = field(default_factory=list)
    key_type: str = "String"

    @property
    def value(self) -> str | None:
        return self.values[0] if self.values else None


@dataclass
class EwsResponse:
    code: str
    message: str = ""
    root: ET.Element | None = None


def _t(name: str) -> str:
    return f"{{{TYPES_NS}}}{name}"


def _m(name: str) -> str:
    return f"{{{MESSAGES_NS}}}{name}"


def parse_dictionary(root: ET.Element) -> dict[str, DictionaryEntry]:
    entries: dict[str, DictionaryEntry] = {}
    for node in root.iter(_t("DictionaryEntry")):
        key_node = node.find(_t("DictionaryKey"))
        if key_node is None:
            continue
        key = key_node.findtext(_t("Value")) or ""
        entry = DictionaryEntry(key=key, key_type=key_node.findtext(_t("Type")) or "String")
        value_node = node.find(_t("DictionaryValue"))
        if value_node is not None:
            entry.value_type = value_node.findtext(_t("Type"))
            entry.values = [v.text or "" for v in value_node.findall(_t("Value"))]
        entries[key] = entry
    return entries


def render_dictionary(entries: dict[str, DictionaryEntry]) -> str:
    parts = ["<t:Dictionary>"]
    for entry in entries.values():
        parts.append("<t:DictionaryEntry>")
        parts.append(
            f"<t:DictionaryKey><t:Type>{escape(entry.key_type)}</t:Type>"
            f"<t:Value>{escape(entry.key)}</t:Value></t:DictionaryKey>"
        )
        if entry.value_type is not None:
            values = "".join(f"<t:Value>{escape(v)}</t:Value>" for v in entry.values)
            parts.append(f"<t:DictionaryValue><t:Type>{escape(entry.value_type)}</t:Type>{values}</t:DictionaryValue>")
        parts.append("</t:DictionaryEntry>")
    parts.append("</t:Dictionary>")
    return "".join(parts)


def _configuration_name(prefix: str = "t") -> str:
    return (
        f"<{prefix}:UserConfigurationName Name={quoteattr(USER_OPTIONS)}>"
        f'<t:DistinguishedFolderId Id="root"/></{prefix}:UserConfigurationName>'
    )


class EwsSignatureClient:
    """Reads and writes legacy signatures by impersonating each mailbox."""

    def __init__(
        self,
        ews_url: str,
        token: ClientCredentialsToken,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.ews_url = ews_url
        self.token = token
        self.transport = transport
        self.timeout = timeout

    def _envelope(self, mail: str, body: str) -> str:
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            f'<soap:Envelope xmlns:soap="{SOAP_NS}" xmlns:t="{TYPES_NS}" xmlns:m="{MESSAGES_NS}">'
            "<soap:Header>"
            f'<t:RequestServerVersion Version="{SERVER_VERSION}"/>'
            "<t:ExchangeImpersonation><t:ConnectingSID>"
            f"<t:SmtpAddress>{escape(mail)}</t:SmtpAddress>"
            "</t:ConnectingSID></t:ExchangeImpersonation>"
            "</soap:Header>"
            f"<soap:Body>{body}</soap:Body>"
            "</soap:Envelope>"
        )

    async def _call(self, mail: str, action: str, body: str) -> EwsResponse:
        """POST one SOAP operation; transport failures raise MailboxClientError."""
        try:
            headers = await self.token.headers()
            headers.update(
                {
                    "Content-Type": "text/xml; charset=utf-8",
                    "SOAPAction": f"{MESSAGES_NS}/{action}",
                    "X-AnchorMailbox": mail,
                }
            )
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.ews_url, headers=headers, content=self._envelope(mail, body).encode("utf-8")
                )
        except (AuthenticationError, httpx.HTTPError) as exc:
            raise MailboxClientError(f"{action} failed: {exc}") from exc

        if response.status_code == 401:
            self.token.invalidate()
        if response.status_code in (401, 403):
            return EwsResponse(code="ErrorAccessDenied", message=f"HTTP {response.status_code}")

        root = None
        code = None
        message = ""
        if response.content:
            try:
                root = ET.fromstring(response.content)
            except ET.ParseError:
                root = None
        if root is not None:
            code = root.findtext(f".//{_m('ResponseCode')}")
            message = root.findtext(f".//{_m('MessageText')}") or root.findtext(".//faultstring") or ""

        if code is None:
            if response.status_code != 200:
                raise MailboxClientError(f"{action} failed: {response.status_code} {response.text[:200]}")
            code = "NoError"
        return EwsResponse(code=code, message=message, root=root)

    async def _read_options(self, mail: str) -> EwsResponse:
        body = (
            "<m:GetUserConfiguration>"
            f"{_configuration_name('m')}"
            "<m:UserConfigurationProperties>Dictionary</m:UserConfigurationProperties>"
            "</m:GetUserConfiguration>"
        )
        return await self._call(mail, "GetUserConfiguration", body)

    async def get_signature(self, mail: str) -> MailboxSignature:
        """Never raises: failures come back as an inaccessible mailbox."""
        try:
            result = await self._read_options(mail)
        except MailboxClientError as exc:
            logger.error("mailbox_read_failed", mail=mail, error=str(exc))
            return MailboxSignature(is_accessible=False, access_error=f"Error: {exc}")

        if result.code in ACCESS_DENIED_CODES:
            logger.warning("mailbox_access_denied", mail=mail, code=result.code)
            return MailboxSignature(is_accessible=False, access_error=ACCESS_DENIED_MESSAGE)
        if result.code == ITEM_NOT_FOUND:
            return MailboxSignature(access_error=UNREADABLE_MESSAGE)
        if result.code != "NoError":
            logger.error("mailbox_read_error", mail=mail, code=result.code, message=result.message)
            return MailboxSignature(is_accessible=False, access_error=f"Error: {result.code} {result.message}".strip())

        entries = parse_dictionary(result.root) if result.root is not None else {}
        html = entries["signaturehtml"].value if "signaturehtml" in entries else None
        text = entries["signaturetext"].value if "signaturetext" in entries else None
        if html or text:
            logger.info("mailbox_legacy_signature_found", mail=mail)
            return MailboxSignature(html=html or None, text=text or None)
        return MailboxSignature(access_error=UNREADABLE_MESSAGE)

    async def set_signature(self, mail: str, html: str, text: str | None = None) -> bool:
        """Write the signature and turn on auto-insert for new mail and replies.

        Returns False when the mailbox refuses the update; transport
        failures raise MailboxClientError.
        """
        current = await self._read_options(mail)
        if current.code in ACCESS_DENIED_CODES:
            logger.warning("mailbox_access_denied", mail=mail, code=current.code)
            return False
        if current.code not in ("NoError", ITEM_NOT_FOUND):
            logger.error("mailbox_read_error", mail=mail, code=current.code, message=current.message)
            return False

        exists = current.code == "NoError"
        entries = parse_dictionary(current.root) if exists and current.root is not None else {}
        for key, value_type, value in (
            ("signaturehtml", "String", html),
            ("signaturetext", "String", text if text is not None else html_to_text(html)),
            ("autoaddsignature", "Boolean", "true"),
            ("autoaddsignatureonreply", "Boolean", "true"),
            ("signaturename", "String", "Default"),
            ("newsignature", "String", "Default"),
            ("replysignature", "String", "Default"),
        ):
            entries[key] = DictionaryEntry(key=key, value_type=value_type, values=[value])

        action = "UpdateUserConfiguration" if exists else "CreateUserConfiguration"
        body = (
            f"<m:{action}><m:UserConfiguration>"
            f"{_configuration_name()}{render_dictionary(entries)}"
            f"</m:UserConfiguration></m:{action}>"
        )
        result = await self._call(mail, action, body)
        if result.code != "NoError":
            logger.error("mailbox_write_failed", mail=mail, action=action, code=result.code, message=result.message)
            return False
        logger.info("mailbox_signature_written", mail=mail, action=action, html_length=len(html))
        return True
