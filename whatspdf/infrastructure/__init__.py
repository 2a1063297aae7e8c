"""Infrastructure layer exports."""

from .downloads import ArtifactDownloader, CheckoutClient
from .stream import ProgressChannel, SSEProgressChannel, ServerSentEvent, Subscription, iter_sse
from .submitter import JobSubmitter

__all__ = [
    "ArtifactDownloader",
    "CheckoutClient",
    "JobSubmitter",
    "ProgressChannel",
    "SSEProgressChannel",
    "ServerSentEvent",
    "Subscription",
    "iter_sse",
]
