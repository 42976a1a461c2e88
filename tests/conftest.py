import datetime as dt

import pytest

from sitefeed.models import PostRecord, SiteMetadata

UTC = dt.timezone.utc
BUILD_TIME = dt.datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def site():
    return SiteMetadata(
        title="Notes & Sketches",
        subtitle="Write an awesome description for your new site here.",
        base_url="https://example.com",
        generator_name="sitefeed",
        generator_version="0.1.0",
        build_timestamp=BUILD_TIME,
    )


@pytest.fixture
def make_post():
    def factory(slug="welcome-to-jekyll", date=(2024, 2, 22), **overrides):
        published = dt.datetime(*date, 14, 35, tzinfo=dt.timezone(dt.timedelta(hours=8)))
        fields = {
            "title": slug.replace("-", " ").title(),
            "url_path": f"/jekyll/update/{published:%Y/%m/%d}/{slug}.html",
            "published_at": published,
            "categories": ("jekyll", "update"),
            "content_html": f"<p>Body of {slug}</p>",
            "summary_text": f"<p>Summary of {slug}</p>",
            "author_name": "",
        }
        fields.update(overrides)
        return PostRecord(**fields)

    return factory
