from rich.console import Console

def get_rich_console() -> Console: return Console(stderr=True)


def human_size(num: int) -> str:
    """1536 -> '1.5 KiB'."""
    if num < 1024:
        return f"{num} B"
    size = float(num)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024 or unit == "GiB":
            break
    return f"{size:.1f} {unit}"
