# tests/test_crud.py
from datetime import timedelta

from app import crud, models
from conftest import make_listing, make_rewrite

TTL = timedelta(hours=24)


def test_save_and_find_latest(db):
    data = make_listing()
    listing_id = crud.save_listing(db, data)
    obj = crud.find_latest_listing(db, "B08N5WRWNW")
    assert obj is not None
    assert obj.id == listing_id
    assert obj.title == data.title
    assert obj.bullet_points == data.bullet_points
    assert obj.description == data.description
    assert obj.price == data.price
    assert obj.image_url == data.image_url


def test_find_latest_prefers_newest_snapshot(db):
    crud.save_listing(db, make_listing(age=timedelta(days=3), title="Old title"))
    newest = crud.save_listing(db, make_listing(title="New title"))
    assert crud.find_latest_listing(db, "B08N5WRWNW").id == newest
    assert crud.find_latest_listing(db, "B000000000") is None


def test_fresh_listing_within_ttl(db):
    listing_id = crud.save_listing(db, make_listing(age=timedelta(hours=1)))
    fresh = crud.find_fresh_listing(db, "B08N5WRWNW", TTL)
    assert fresh is not None
    assert fresh.id == listing_id


def test_stale_listing_is_a_miss(db):
    crud.save_listing(db, make_listing(age=timedelta(hours=25)))
    assert crud.find_fresh_listing(db, "B08N5WRWNW", TTL) is None
    # the stale snapshot is still there for plain lookups
    assert crud.find_latest_listing(db, "B08N5WRWNW") is not None


def test_record_and_list_optimizations(db):
    listing_id = crud.save_listing(db, make_listing())
    first = crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite(title="First"))
    second = crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite(title="Second"))

    items = crud.list_optimizations(db, "B08N5WRWNW", limit=20, offset=0)
    assert [o.id for o in items] == [second.id, first.id]
    assert items[0].keywords == make_rewrite().optimized.keywords
    assert items[0].prompt_tokens == 120
    assert crud.count_optimizations(db, "B08N5WRWNW") == 2

    page = crud.list_optimizations(db, "B08N5WRWNW", limit=1, offset=1)
    assert [o.id for o in page] == [first.id]


def test_list_optimizations_is_repeatable(db):
    listing_id = crud.save_listing(db, make_listing())
    for i in range(3):
        crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite(title=f"Run {i}"))
    once = [(o.id, o.optimized_title) for o in crud.list_optimizations(db, "B08N5WRWNW")]
    twice = [(o.id, o.optimized_title) for o in crud.list_optimizations(db, "B08N5WRWNW")]
    assert once == twice


def test_get_optimization_with_listing(db):
    data = make_listing()
    listing_id = crud.save_listing(db, data)
    opt = crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite())

    row = crud.get_optimization_with_listing(db, opt.id)
    assert row.id == opt.id
    assert row.original_title == data.title
    assert row.original_bullets == data.bullet_points
    assert row.original_price == data.price
    assert row.optimized_title == opt.optimized_title
    assert crud.get_optimization_with_listing(db, opt.id + 100) is None


def test_recent_optimizations_one_per_asin(db):
    mug = crud.save_listing(db, make_listing())
    lamp = crud.save_listing(db, make_listing(asin="B07XJ8C8F5", title="Desk Lamp", image_url=None))
    crud.record_optimization(db, mug, "B08N5WRWNW", make_rewrite(title="Mug v1"))
    crud.record_optimization(db, lamp, "B07XJ8C8F5", make_rewrite(title="Lamp v1"))
    latest_mug = crud.record_optimization(db, mug, "B08N5WRWNW", make_rewrite(title="Mug v2"))

    rows = crud.recent_optimizations(db, limit=10)
    assert [r.asin for r in rows] == ["B08N5WRWNW", "B07XJ8C8F5"]
    assert rows[0].id == latest_mug.id
    assert rows[0].optimized_title == "Mug v2"
    assert rows[1].original_title == "Desk Lamp"
    assert rows[1].original_image_url is None

    assert len(crud.recent_optimizations(db, limit=1)) == 1


def test_delete_optimizations_keeps_listings(db):
    listing_id = crud.save_listing(db, make_listing())
    other = crud.save_listing(db, make_listing(asin="B07XJ8C8F5"))
    crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite())
    crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite())
    crud.record_optimization(db, other, "B07XJ8C8F5", make_rewrite())

    assert crud.delete_optimizations(db, "B08N5WRWNW") == 2
    assert crud.list_optimizations(db, "B08N5WRWNW") == []
    assert crud.count_optimizations(db, "B08N5WRWNW") == 0
    assert crud.count_optimizations(db, "B07XJ8C8F5") == 1
    assert crud.get_listing(db, listing_id) is not None
    assert crud.delete_optimizations(db, "B08N5WRWNW") == 0


def test_deleting_listing_cascades_to_optimizations(db):
    listing_id = crud.save_listing(db, make_listing())
    crud.record_optimization(db, listing_id, "B08N5WRWNW", make_rewrite())

    db.delete(crud.get_listing(db, listing_id))
    db.commit()
    db.expire_all()
    assert db.query(models.Optimization).count() == 0
