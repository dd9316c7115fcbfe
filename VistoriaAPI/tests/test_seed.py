from VistoriaAPI.models import Property, User
from VistoriaAPI.seed import SAMPLE_ROOMS, seed


def test_seed_is_idempotent(db):
    first = seed(db)
    second = seed(db)

    assert first == {"admin": True, "inspector": True, "property": True}
    assert second == {"admin": False, "inspector": False, "property": False}
    assert db.query(User).filter(User.email == "inspector@vistoria.app").count() == 1
    prop = db.query(Property).filter(Property.street == "Rua Exemplo").one()
    assert [room.name for room in prop.rooms] == SAMPLE_ROOMS
