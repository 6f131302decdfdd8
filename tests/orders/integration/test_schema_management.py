from orders.domain import orders
from orders.utils.db import drop_db, setup_db


def test_memory_configuration_has_no_sql_schema():
    assert setup_db(orders) == []
    assert drop_db(orders) == []
