import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.config import settings
from app.database import Base, make_engine
from app.dependencies import create_access_token, get_attachment_store, get_db
from app.main import app
from app.models.connection import ACCEPTED, Connection
from app.models.user import User
from app.services.attachments import AttachmentStore

test_engine = make_engine(settings.test_database_url)
TestSession = sessionmaker(bind=test_engine, join_transaction_mode="create_savepoint")


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestSession(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def attachment_store(upload_dir, staging_dir):
    return AttachmentStore(
        upload_dir=str(upload_dir),
        url_prefix="/uploads/messages",
        staging_dir=str(staging_dir),
    )


@pytest.fixture
def client(db, attachment_store):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attachment_store] = lambda: attachment_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email, name, role="member"):
    user = User(email=email, name=name, role=role)
    db.add(user)
    db.commit()
    return user


def headers_for(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def alice(db):
    return make_user(db, "alice@test.com", "Alice", role="alumni")


@pytest.fixture
def bob(db):
    return make_user(db, "bob@test.com", "Bob", role="student")


@pytest.fixture
def carol(db):
    return make_user(db, "carol@test.com", "Carol")


@pytest.fixture
def alice_headers(alice):
    return headers_for(alice)


@pytest.fixture
def bob_headers(bob):
    return headers_for(bob)


@pytest.fixture
def carol_headers(carol):
    return headers_for(carol)


@pytest.fixture
def connection(db, alice, bob):
    conn = Connection.between(alice.id, bob.id, status=ACCEPTED)
    db.add(conn)
    db.commit()
    return conn
