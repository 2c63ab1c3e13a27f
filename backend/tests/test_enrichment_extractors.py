import pytest

from gallery_pipeline.services.enrichment import (
    extract_email,
    extract_founded_year,
    extract_instagram,
    extract_space_size,
)


@pytest.mark.parametrize(
    "html,expected",
    [
        ('<a href="https://www.instagram.com/kukjegallery/">IG</a>', "https://www.instagram.com/kukjegallery/"),
        ('<meta content="https://instagram.com/@Perrotin" />', "https://www.instagram.com/perrotin/"),
        ('{"instagram": "https://instagram.com/PKMgallery"}', "https://www.instagram.com/pkmgallery/"),
        ("Follow us: instagram.com/white_cube.", "https://www.instagram.com/white_cube/"),
    ],
)
def test_extract_instagram_profile_links(html, expected):
    assert extract_instagram(html) == expected


@pytest.mark.parametrize(
    "html",
    [
        '<a href="https://www.instagram.com/explore/">Explore</a>',
        '<a href="https://www.instagram.com/p/C1xYz/">Post</a>',
        "<p>No social links here</p>",
        "",
    ],
)
def test_extract_instagram_ignores_non_profiles(html):
    assert extract_instagram(html) is None


@pytest.mark.parametrize(
    "html,expected",
    [
        ("<p>Founded in 1998 in Seoul.</p>", 1998),
        ("<p>Established 1982</p>", 1982),
        ("<p>Est. 1985</p>", 1985),
        ("<p>Since 1872, the gallery has...</p>", 1872),
        ("<p>1982년 설립된 국제갤러리</p>", 1982),
        ("<p>2006년에 개관하였다</p>", 2006),
        ("<p>1995年設立</p>", 1995),
        ("<dl><dt>設立</dt><dd>：1989</dd></dl>", 1989),
        ("<p>Opened in 2010</p>", 2010),
        ("<p>Gegründet 2004 in Berlin</p>", 2004),
        ("<p>La galerie a été fondée en 1990.</p>", 1990),
    ],
)
def test_extract_founded_year_across_locales(html, expected):
    assert extract_founded_year(html, current_year=2026) == expected


@pytest.mark.parametrize(
    "html",
    [
        "<p>Founded in 1700</p>",
        "<p>Founded in 2099</p>",
        "<p>Call 1998-2020 for details</p>",
    ],
)
def test_extract_founded_year_rejects_implausible_years(html):
    assert extract_founded_year(html, current_year=2026) is None


def test_extract_email_skips_asset_names():
    html = '<img src="logo@2x.png"> Contact: Info@PKMGallery.com'
    assert extract_email(html) == "info@pkmgallery.com"
    assert extract_email("<p>no contact</p>") is None


@pytest.mark.parametrize(
    "html,expected",
    [
        ("<p>Gallery space of 450 m² across two floors.</p>", "Gallery space of 450 m²"),
        ("<p>총 면적 330㎡</p>", "총 면적 330㎡"),
        ("<p>展示面積：120㎡</p>", "展示面積：120㎡"),
        ("<p>전시장 100평 규모</p>", "100평"),
        ("<p>A 5,000 sq ft warehouse</p>", "5,000 sq ft"),
    ],
)
def test_extract_space_size(html, expected):
    assert extract_space_size(html) == expected


def test_extract_space_size_is_bounded_and_optional():
    assert extract_space_size("<p>A lovely space</p>") is None
    long_html = "<p>Exhibition area " + "x" * 30 + " 1200 sqm</p>"
    assert len(extract_space_size(long_html)) <= 80
