from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def format_price(amount_in_paise: int) -> str:
    rupees, paise = divmod(int(amount_in_paise), 100)
    return f"₹{rupees:,}.{paise:02d}"


env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"])
)
env.filters["price"] = format_price


def render_template(template_path: str, **context) -> str:
    template = env.get_template(template_path)
    return template.render(**context)
