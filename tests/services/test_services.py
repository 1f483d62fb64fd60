"""
Tests for the collection services.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from pymongo.results import InsertOneResult, UpdateResult

from bookstore.models import BookCreate, BookUpdate, OrderCreate, OrderUpdate, ReviewCreate, UserCreate, UserUpdate
from bookstore.services import (
    BookService, DuplicateEntryError, NoChangesError, OrderService, PersistenceError,
    ReviewService, UserService, serialize_document, update_fields
)
from bookstore.services.base import utcnow


@pytest.fixture
def mock_collection():
    """Mock motor collection."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.collection.return_value = mock_collection
    return db


def test_serialize_document_renames_id_and_stringifies_references():
    oid, book_id = ObjectId(), ObjectId()
    document = {"_id": oid, "books": [{"bookId": book_id, "quantity": 1}], "totalAmount": 5.0}

    assert serialize_document(document) == {
        "id": str(oid),
        "books": [{"bookId": str(book_id), "quantity": 1}],
        "totalAmount": 5.0,
    }


def test_update_fields_drops_absent_and_null_only():
    payload = BookUpdate.model_validate({"title": None, "price": 0, "stock": 0})
    assert update_fields(payload) == {"price": 0.0, "stock": 0}


@pytest.mark.asyncio
async def test_create_and_get_book(fake_db):
    service = BookService(fake_db)

    created = await service.create(BookCreate(title="Dune", author="Frank Herbert", price=15.5))
    fetched = await service.get_by_id(ObjectId(created["id"]))

    assert created == fetched
    assert fetched["title"] == "Dune"
    assert fetched["stock"] == 0
    assert fetched["createdAt"] == fetched["updatedAt"]
    assert "_id" not in fetched


@pytest.mark.asyncio
async def test_list_all_returns_every_document(fake_db):
    service = BookService(fake_db)
    for title in ("Dune", "Emma", "Ulysses"):
        await service.create(BookCreate(title=title, author="Someone", price=1))

    books = await service.list_all()
    assert [book["title"] for book in books] == ["Dune", "Emma", "Ulysses"]


@pytest.mark.asyncio
async def test_update_merges_over_stored_document(fake_db):
    service = BookService(fake_db)
    created = await service.create(BookCreate(title="Dune", author="Frank Herbert", price=15.5, stock=4))

    changes = update_fields(BookUpdate.model_validate({"stock": 0, "author": None}))
    updated = await service.update(ObjectId(created["id"]), changes)

    assert updated["stock"] == 0
    assert updated["author"] == "Frank Herbert"
    assert updated["price"] == 15.5
    assert updated["updatedAt"] >= updated["createdAt"]


@pytest.mark.asyncio
async def test_update_response_matches_stored_document(fake_db):
    service = BookService(fake_db)
    created = await service.create(BookCreate(title="Dune", author="Frank Herbert", price=15.5))

    updated = await service.update(ObjectId(created["id"]), {"stock": 7})
    fetched = await service.get_by_id(ObjectId(created["id"]))

    assert updated == fetched
    assert fetched["createdAt"].tzinfo is not None
    assert fetched["updatedAt"].tzinfo is not None


def test_utcnow_is_aware_at_millisecond_precision():
    now = utcnow()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
    assert now.microsecond % 1000 == 0


@pytest.mark.asyncio
async def test_update_missing_document(fake_db):
    service = BookService(fake_db)
    assert await service.update(ObjectId(), {"stock": 1}) is None


@pytest.mark.asyncio
async def test_update_document_deleted_after_read(mock_db, mock_collection):
    mock_collection.find_one.return_value = {"_id": ObjectId(), "title": "Dune"}
    mock_collection.update_one.return_value = UpdateResult({"n": 0, "nModified": 0}, acknowledged=True)

    service = BookService(mock_db)
    assert await service.update(ObjectId(), {"title": "Emma"}) is None


@pytest.mark.asyncio
async def test_delete(fake_db):
    service = BookService(fake_db)
    created = await service.create(BookCreate(title="Dune", author="Frank Herbert", price=1))

    assert await service.delete(ObjectId(created["id"])) is True
    assert await service.delete(ObjectId(created["id"])) is False
    assert await service.get_by_id(ObjectId(created["id"])) is None


@pytest.mark.asyncio
async def test_update_reports_no_changes(mock_db, mock_collection):
    mock_collection.find_one.return_value = {"_id": ObjectId(), "title": "Dune"}
    mock_collection.update_one.return_value = UpdateResult({"n": 1, "nModified": 0}, acknowledged=True)

    service = BookService(mock_db)
    with pytest.raises(NoChangesError):
        await service.update(ObjectId(), {"title": "Dune"})


@pytest.mark.asyncio
async def test_create_unacknowledged_write(mock_db, mock_collection):
    mock_collection.insert_one.return_value = InsertOneResult(None, acknowledged=False)

    service = BookService(mock_db)
    with pytest.raises(PersistenceError):
        await service.create(BookCreate(title="Dune", author="Frank Herbert", price=1))


@pytest.mark.asyncio
async def test_user_email_is_lowercased(fake_db):
    service = UserService(fake_db)
    created = await service.create(UserCreate(firstName="Ada", lastName="Lovelace", email="Ada@Example.com"))

    assert created["email"] == "ada@example.com"
    assert created["role"] == "user"


@pytest.mark.asyncio
async def test_user_duplicate_email(fake_db):
    service = UserService(fake_db)
    await service.create(UserCreate(firstName="Ada", lastName="Lovelace", email="ada@example.com"))

    with pytest.raises(DuplicateEntryError, match="Email already exists"):
        await service.create(UserCreate(firstName="Ada", lastName="King", email="ADA@example.com"))


@pytest.mark.asyncio
async def test_user_duplicate_email_caught_by_index(fake_db, monkeypatch):
    service = UserService(fake_db)
    await service.create(UserCreate(firstName="Ada", lastName="Lovelace", email="ada@example.com"))

    # a concurrent insert that slipped past the pre-check
    monkeypatch.setattr(service, "before_create", AsyncMock())
    with pytest.raises(DuplicateEntryError, match="Email already exists"):
        await service.create(UserCreate(firstName="Ada", lastName="King", email="ada@example.com"))

    assert len(fake_db.collection("users").documents) == 1


@pytest.mark.asyncio
async def test_user_update_email_in_use(fake_db):
    service = UserService(fake_db)
    await service.create(UserCreate(firstName="Ada", lastName="Lovelace", email="ada@example.com"))
    grace = await service.create(UserCreate(firstName="Grace", lastName="Hopper", email="grace@example.com"))

    changes = update_fields(UserUpdate(email="Ada@example.com"))
    with pytest.raises(DuplicateEntryError, match="Email already in use"):
        await service.update(ObjectId(grace["id"]), changes)


@pytest.mark.asyncio
async def test_user_update_same_email_skips_check(mock_db, mock_collection):
    oid = ObjectId()
    mock_collection.find_one.return_value = {"_id": oid, "email": "ada@example.com"}
    mock_collection.update_one.return_value = UpdateResult({"n": 1, "nModified": 1}, acknowledged=True)

    service = UserService(mock_db)
    updated = await service.update(oid, {"email": "ADA@example.com", "lastName": "King"})

    assert updated["email"] == "ada@example.com"
    mock_collection.find_one.assert_awaited_once_with({"_id": oid})


@pytest.mark.asyncio
async def test_update_duplicate_key_maps_to_duplicate_entry(mock_db, mock_collection):
    # the stored user is found; the email pre-check finds nobody
    mock_collection.find_one.side_effect = [{"_id": ObjectId(), "email": "ada@example.com"}, None]
    mock_collection.update_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

    service = UserService(mock_db)
    with pytest.raises(DuplicateEntryError, match="Email already exists"):
        await service.update(ObjectId(), {"email": "grace@example.com"})


@pytest.mark.asyncio
async def test_order_references_stored_as_object_ids(fake_db):
    user_id, book_id = ObjectId(), ObjectId()
    service = OrderService(fake_db)

    created = await service.create(OrderCreate(
        userId=str(user_id),
        books=[{"bookId": str(book_id), "quantity": 2}],
        totalAmount=31
    ))

    stored = fake_db.collection("orders").documents[0]
    assert stored["userId"] == user_id
    assert stored["books"] == [{"bookId": book_id, "quantity": 2}]
    assert stored["status"] == "pending"
    assert created["userId"] == str(user_id)


@pytest.mark.asyncio
async def test_order_update_converts_references(fake_db):
    service = OrderService(fake_db)
    created = await service.create(OrderCreate(
        userId=str(ObjectId()),
        books=[{"bookId": str(ObjectId()), "quantity": 1}],
        totalAmount=10
    ))

    new_book = ObjectId()
    changes = update_fields(OrderUpdate(books=[{"bookId": str(new_book), "quantity": 3}]))
    updated = await service.update(ObjectId(created["id"]), changes)

    assert updated["books"] == [{"bookId": str(new_book), "quantity": 3}]
    assert fake_db.collection("orders").documents[0]["books"][0]["bookId"] == new_book


@pytest.mark.asyncio
async def test_review_pair_is_unique(fake_db):
    service = ReviewService(fake_db)
    user_id, book_id = str(ObjectId()), str(ObjectId())
    await service.create(ReviewCreate(userId=user_id, bookId=book_id, rating=4))

    with pytest.raises(DuplicateEntryError, match="Review already exists for this user and book"):
        await service.create(ReviewCreate(userId=user_id, bookId=book_id, rating=1))

    await service.create(ReviewCreate(userId=str(ObjectId()), bookId=book_id, rating=1))
    assert len(fake_db.collection("reviews").documents) == 2


@pytest.mark.asyncio
async def test_review_pair_caught_by_index(fake_db, monkeypatch):
    service = ReviewService(fake_db)
    user_id, book_id = str(ObjectId()), str(ObjectId())
    await service.create(ReviewCreate(userId=user_id, bookId=book_id, rating=4))

    monkeypatch.setattr(service, "before_create", AsyncMock())
    with pytest.raises(DuplicateEntryError, match="Review already exists for this user and book"):
        await service.create(ReviewCreate(userId=user_id, bookId=book_id, rating=2))
