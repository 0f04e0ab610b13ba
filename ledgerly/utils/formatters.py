"""Display formatting for notification messages."""


def format_brl(value: float) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1.234,56``.

    Negative values are rendered with a leading minus sign: ``-R$ 10,00``.
    """
    sign = "-" if value < 0 else ""
    formatted = f"{abs(value):,.2f}"
    # 1,234.56 -> 1.234,56
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {formatted}"


def render_template(template: str, data: dict) -> str:
    """Replace ``{key}`` placeholders with values from ``data``.

    Unknown placeholders are left untouched.
    """
    message = template
    for key, value in data.items():
        message = message.replace("{" + key + "}", str(value))
    return message
