import uuid


def generate_message_id() -> str:
    """Server-side message identity (random UUID4)."""
    return str(uuid.uuid4())


def generate_blob_ref(extension: str = '') -> str:
    """Opaque file name for a stored blob, keeping the original extension."""
    ext = extension.lower().lstrip('.')
    return f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex


def generate_batch_id() -> str:
    return uuid.uuid4().hex
