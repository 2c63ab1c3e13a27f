from gallery_pipeline.models.directory import ExternalGalleryDirectory
from gallery_pipeline.services.directory_quality import CanonicalDirectoryGallery, RawDirectoryRecord, canonicalize
from gallery_pipeline.services.directory_store import DirectoryStore


def _gallery(gallery_id="__ext_dir_pkm_seoul", **overrides) -> CanonicalDirectoryGallery:
    values = dict(
        gallery_id=gallery_id,
        match_key="hostncc:pkmgallery.com|pkm|한국|seoul",
        name="PKM Gallery",
        country="한국",
        city="Seoul",
        website="https://www.pkmgallery.com",
        source_portals=["Naver"],
        quality_score=70,
    )
    values.update(overrides)
    return CanonicalDirectoryGallery(**values)


def test_upsert_inserts_rows_and_joins_portals(db):
    store = DirectoryStore(db)
    written = store.upsert([_gallery(source_portals=["Naver", "Google"], quality_score=75)])

    assert written == 1
    row = db.get(ExternalGalleryDirectory, "__ext_dir_pkm_seoul")
    assert row.source_portal == "Naver, Google"
    assert row.source_count == 2
    assert row.source_portals == ["Naver", "Google"]
    assert row.crawl_fail_count == 0


def test_resync_overwrites_core_fields_but_keeps_enrichment(db):
    store = DirectoryStore(db)
    store.upsert([_gallery(bio="Old bio")])
    db.query(ExternalGalleryDirectory).update(
        {"instagram": "https://www.instagram.com/pkmgallery/", "founded_year": 2001, "space_size": "300 m²"}
    )
    db.commit()

    store.upsert([_gallery(bio="New bio", quality_score=80, external_email="info@pkmgallery.com")])
    db.expire_all()
    row = db.get(ExternalGalleryDirectory, "__ext_dir_pkm_seoul")
    assert row.bio == "New bio"
    assert row.quality_score == 80
    assert row.external_email == "info@pkmgallery.com"
    assert row.instagram == "https://www.instagram.com/pkmgallery/"
    assert row.founded_year == 2001
    assert row.space_size == "300 m²"

    store.upsert([_gallery(bio=None, external_email=None)])
    db.expire_all()
    row = db.get(ExternalGalleryDirectory, "__ext_dir_pkm_seoul")
    assert row.bio is None
    assert row.external_email == "info@pkmgallery.com"


def test_upsert_skips_invalid_rows_and_duplicate_ids(db):
    store = DirectoryStore(db, chunk_size=2)
    written = store.upsert(
        [
            _gallery(name="PKM Gallery"),
            _gallery(name="PKM Duplicate"),
            _gallery(gallery_id="", name="No id"),
            _gallery(gallery_id="__ext_dir_blank_city", city="  "),
            _gallery(gallery_id="__ext_dir_white_cube_london", name="White Cube", country="영국", city="London"),
            _gallery(gallery_id="__ext_dir_lisson_london", name="Lisson Gallery", country="영국", city="London"),
        ]
    )

    assert written == 3
    assert db.query(ExternalGalleryDirectory).count() == 3
    assert db.get(ExternalGalleryDirectory, "__ext_dir_pkm_seoul").name == "PKM Gallery"


def test_list_all_orders_by_quality_then_name(db):
    store = DirectoryStore(db)
    store.upsert(
        [
            _gallery(gallery_id="a", name="Beta", quality_score=50),
            _gallery(gallery_id="b", name="Alpha", quality_score=90),
        ]
    )

    listed = store.list_all()
    assert [g.name for g in listed] == ["Alpha", "Beta"]
    assert listed[0].source_portals == ["Naver"]


def test_get_by_id_returns_none_for_unknown_or_blank(db):
    store = DirectoryStore(db)
    store.upsert([_gallery()])

    assert store.get_by_id("__ext_dir_pkm_seoul").name == "PKM Gallery"
    assert store.get_by_id("__ext_dir_missing") is None
    assert store.get_by_id("  ") is None


def test_hangul_named_galleries_both_reach_storage(db):
    canonical = canonicalize(
        [
            RawDirectoryRecord(name="국제갤러리", country="한국", city="서울", source_portal="Naver"),
            RawDirectoryRecord(name="현대화랑", country="한국", city="서울", source_portal="Naver"),
        ]
    )

    assert DirectoryStore(db).upsert(canonical) == 2
    assert {row.name for row in db.query(ExternalGalleryDirectory).all()} == {"국제갤러리", "현대화랑"}
