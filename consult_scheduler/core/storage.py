"""Public URL resolution for externally stored artifacts."""

from urllib.parse import quote

from consult_scheduler.config import settings


def get_public_url(artifact_ref: str | None, bucket: str) -> str | None:
    """
    Resolve an artifact reference to its public download URL.

    Args:
        artifact_ref: Object path inside the bucket, or an absolute URL
        bucket: Storage bucket name

    Returns:
        Public URL, or None when there is no reference
    """
    if not artifact_ref:
        return None
    if artifact_ref.startswith(("http://", "https://")):
        return artifact_ref

    base = settings.storage_public_base_url.rstrip("/")
    return f"{base}/{bucket}/{quote(artifact_ref.lstrip('/'))}"


def consent_url(artifact_ref: str | None) -> str | None:
    """Public URL of a signed consent document."""
    return get_public_url(artifact_ref, settings.consent_bucket)


def receipt_url(artifact_ref: str | None) -> str | None:
    """Public URL of a payment proof."""
    return get_public_url(artifact_ref, settings.receipt_bucket)
