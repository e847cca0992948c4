from ulid import ULID


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_transmission_id() -> str:
    return new_ulid("tx_")


def new_social_live_id() -> str:
    return new_ulid("sl_")


def new_recording_id() -> str:
    return new_ulid("rec_")
