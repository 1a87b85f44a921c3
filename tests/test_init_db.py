from app.db import models
from app.db.enums import ResourceTemplateType
from app.db.init_db import DEFAULT_RESOURCE_TEMPLATES, seed_resource_templates


def test_seed_resource_templates_once(db_session):
    assert seed_resource_templates(db_session) == len(DEFAULT_RESOURCE_TEMPLATES)
    assert seed_resource_templates(db_session) == 0
    assert db_session.query(models.ResourceTemplate).count() == len(DEFAULT_RESOURCE_TEMPLATES)
    calculators = (
        db_session.query(models.ResourceTemplate)
        .filter(models.ResourceTemplate.type == ResourceTemplateType.CALCULATOR)
        .count()
    )
    assert calculators == 2
