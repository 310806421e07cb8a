"""
Contracts for the external collaborators the dispatch engine drives.

Adapters raise the error taxonomy from app.domain.errors:
TransientDependencyError subclasses for outages, TerminalBusinessError
subclasses for definitive rejections.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ShippingAddress:
    name: str
    street1: str
    city: str
    state_code: str
    postcode: str
    country_code: str = "US"
    street2: str | None = None
    phone_number: str = "0000000000"
    email: str | None = None


@dataclass(frozen=True)
class RenderedArtifact:
    """Document produced for one period. URLs must be fetchable by the print vendor."""
    title: str
    page_count: int
    interior: bytes
    cover: bytes = b""
    interior_url: str | None = None
    cover_url: str | None = None
    filename: str = "journal.txt"
    mime_type: str = "text/plain"


@dataclass(frozen=True)
class VendorQuote:
    cost_cents: int
    currency: str = "USD"


@dataclass(frozen=True)
class VendorJob:
    vendor_job_id: str


@dataclass(frozen=True)
class VendorStatus:
    """Vendor job state mapped onto PrintOrder statuses (None = nothing to apply)."""
    status: str | None
    tracking_url: str | None = None
    cost_cents: int | None = None
    message: str | None = None
    raw_status: str | None = None


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    attachments: list[dict] = field(default_factory=list)


class VendorGateway(ABC):
    """Print vendor: price, submit and track print jobs."""

    @abstractmethod
    def quote(self, pod_package_id: str, page_count: int, address: ShippingAddress) -> VendorQuote:
        """Price a job before it is charged."""

    @abstractmethod
    def submit(
        self,
        artifact: RenderedArtifact,
        address: ShippingAddress,
        color_option: str,
        *,
        frequency: str,
        external_id: str,
    ) -> VendorJob:
        """Create a print job for a rendered artifact."""

    @abstractmethod
    def poll_status(self, vendor_job_id: str) -> VendorStatus:
        """Current state of a submitted job."""

    @abstractmethod
    def pod_package_id(self, frequency: str, color_option: str) -> str:
        """Vendor product identifier for a book of this cadence and color."""


class PaymentGateway(ABC):
    @abstractmethod
    def charge(self, customer_id: str, amount_cents: int, description: str, *, idempotency_key: str | None = None) -> str:
        """Capture a payment; returns the payment id. Repeating a key replays the first attempt."""

    @abstractmethod
    def refund(self, payment_id: str) -> None:
        """Refund a captured payment in full."""


class ChatSender(ABC):
    """Reminder delivery channel (chat bot)."""

    @abstractmethod
    def send(self, chat_id: str, text: str) -> None:
        """Deliver text or raise NotificationDeliveryError."""


class EmailSender(ABC):
    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """Deliver an email or raise NotificationDeliveryError."""


class ArtifactRenderer(ABC):
    """Turns a period's entries into a document. Layout is the renderer's concern."""

    @abstractmethod
    def render(self, entries: list, *, title: str, key: str, color_option: str = "bw") -> RenderedArtifact:
        """Render entries (oldest first) into an artifact stored under key."""
