def format_uptime(seconds: float) -> str:
    """
    Render an uptime as e.g. ``"2 days, 1 hour, 45 min"``.

    Days and hours are omitted when zero; minutes are always present.
    """
    seconds = int(seconds)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60

    parts = []
    if days > 0:
        parts.append(f"{days} day{'s' if days > 1 else ''}")
    if hours > 0:
        parts.append(f"{hours} hour{'s' if hours > 1 else ''}")
    parts.append(f"{minutes} min")

    return ", ".join(parts)
