"""Small helpers shared by the resolvers and storage engines."""
import re


def generate_slug(name: str) -> str:
    """Generate a URL-friendly slug: lowercase, every run of other characters becomes one '-'."""
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')
