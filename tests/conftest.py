import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.security import create_access_token, get_password_hash
from app.db.session import get_session
from app.main import app
from app.models import Category, Product, ProductStatus, Review, ReviewStatus, Tag, User, UserRole


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(session, email, role=UserRole.USER, name=None):
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=get_password_hash("correct-horse"),
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def make_user(session):
    def factory(email, role=UserRole.USER, name=None):
        return _make_user(session, email, role=role, name=name)
    return factory


@pytest.fixture()
def user(session):
    return _make_user(session, "alice@example.com")


@pytest.fixture()
def other_user(session):
    return _make_user(session, "bob@example.com")


@pytest.fixture()
def admin(session):
    return _make_user(session, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture()
def auth_headers():
    def headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}
    return headers


@pytest.fixture()
def category(session):
    category = Category(name="Writing Assistants", slug="writing-assistants")
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@pytest.fixture()
def tag(session):
    tag = Tag(name="API", slug="api")
    session.add(tag)
    session.commit()
    session.refresh(tag)
    return tag


@pytest.fixture()
def make_product(session, category):
    counter = {"n": 0}

    def factory(owner, name=None, status=ProductStatus.APPROVED, **fields):
        counter["n"] += 1
        name = name or f"Product {counter['n']}"
        product = Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            description=fields.pop("description", f"{name} description"),
            category_id=fields.pop("category_id", category.id),
            submitted_by=owner.id,
            status=status,
            **fields,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return factory


@pytest.fixture()
def product(make_product, user):
    return make_product(user, name="Quill Writer")


@pytest.fixture()
def make_review(session):
    def factory(product, author, rating=4, status=ReviewStatus.APPROVED, **fields):
        review = Review(
            product_id=product.id,
            user_id=author.id,
            rating=rating,
            content=fields.pop("content", "Solid tool for everyday drafting."),
            status=status,
            **fields,
        )
        session.add(review)
        session.commit()
        session.refresh(review)
        return review

    return factory
