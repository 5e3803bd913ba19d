from sql_review.catalog import MONGO_CATALOG, MYSQL_CATALOG, POSTGRES_CATALOG
from sql_review.rule_checks import mongo_checks, mysql_checks, postgres_checks


def _mysql(text):
    return [check.code for check in mysql_checks.CHECKS if check.matches(text.upper())]


def _pg(text):
    return [check.code for check in postgres_checks.CHECKS if check.matches(text.upper())]


def _mongo(text):
    return [check.code for check in mongo_checks.CHECKS if check.matches(mongo_checks.compact(text))]


def test_every_check_belongs_to_its_catalog():
    for module, catalog in (
        (mysql_checks, MYSQL_CATALOG),
        (postgres_checks, POSTGRES_CATALOG),
        (mongo_checks, MONGO_CATALOG),
    ):
        for check in module.CHECKS:
            assert catalog.get(check.code) is not None, check.code


def test_mysql_unfiltered_writes():
    assert "update_without_where" in _mysql("UPDATE users SET status = 'off'")
    assert "delete_without_where" in _mysql("DELETE FROM orders")
    assert "update_without_where" not in _mysql("UPDATE users SET a = 1 WHERE id = 1")
    assert "delete_without_where" not in _mysql("delete from orders where id = 1")


def test_mysql_where_inside_string_is_not_a_filter():
    assert "update_without_where" in _mysql("UPDATE users SET note = 'where'")


def test_mysql_select_hygiene():
    assert _mysql("SELECT * FROM users") == ["select_star", "select_without_limit"]
    assert _mysql("SELECT id FROM users LIMIT 10") == []
    assert _mysql("SELECT id FROM users WHERE name LIKE '%tom' LIMIT 5") == ["like_leading_wildcard"]
    assert _mysql("SELECT id FROM users ORDER BY RAND() LIMIT 1") == ["order_by_rand"]


def test_mysql_destructive_ddl():
    assert _mysql("DROP TABLE users") == ["dangerous_drop"]
    assert _mysql("DROP PROCEDURE p_demo") == []
    assert _mysql("TRUNCATE TABLE logs") == ["dangerous_truncate"]
    assert _mysql("ALTER TABLE users DROP COLUMN age") == ["alter_drop_column"]


def test_mysql_where_one_eq_one():
    codes = _mysql("UPDATE t SET a = 1 WHERE 1=1")
    assert "where_1_eq_1" in codes
    assert "update_without_where" not in codes


def test_mysql_into_outfile():
    assert "into_outfile" in _mysql("SELECT id FROM t INTO OUTFILE '/tmp/t.csv'")


def test_mysql_maintainability():
    assert _mysql("INSERT INTO users VALUES (1, 'a')") == ["insert_without_column_list"]
    assert _mysql("INSERT INTO users (id, name) VALUES (1, 'a')") == []
    assert _mysql("CREATE TABLE t (id INT)") == ["create_table_without_if_not_exists"]
    assert _mysql("CREATE TABLE IF NOT EXISTS t (id INT)") == []


def test_mysql_routine_detection():
    assert mysql_checks.contains_routine("CREATE DEFINER=`root`@`%` TRIGGER trg BEFORE INSERT ON t")
    assert mysql_checks.contains_routine("create function f() returns int return 1")
    assert not mysql_checks.contains_routine("CREATE TABLE procedures (id INT)")


def test_pg_create_index_needs_concurrently():
    assert _pg("CREATE INDEX idx_a ON t (a)") == ["pg_create_index_without_concurrently"]
    assert _pg("CREATE UNIQUE INDEX idx_a ON t (a)") == ["pg_create_index_without_concurrently"]
    assert _pg("CREATE INDEX CONCURRENTLY idx_a ON t (a)") == []


def test_pg_ilike_leading_wildcard():
    assert _pg("SELECT id FROM users WHERE name ILIKE '%tom%' LIMIT 5") == ["pg_like_leading_wildcard"]


def test_pg_uses_its_own_codes():
    assert _pg("SELECT * FROM users") == ["pg_select_star", "pg_select_without_limit"]
    assert _pg("DELETE FROM users") == ["pg_delete_without_where"]
    assert _pg("DROP VIEW v") == ["pg_dangerous_drop"]
    assert _pg("TRUNCATE TABLE t") == ["pg_dangerous_truncate"]
    assert _pg("UPDATE t SET a = 1") == ["pg_update_without_where"]


def test_mongo_empty_filters():
    assert _mongo("db.users.updateMany( {} , {$set: {a: 1}})") == ["mongo_update_many_without_filter"]
    assert _mongo("db.users.deleteMany({ })") == ["mongo_delete_many_without_filter"]
    assert _mongo("db.users.deleteMany({status: 'x'})") == []


def test_mongo_find_needs_limit():
    assert _mongo("db.users.find({a: 1})") == ["mongo_find_without_limit"]
    assert _mongo("db.users.find({a: 1}).limit(10)") == []


def test_mongo_where_and_aggregate_output():
    assert _mongo("db.users.find({$where: 'this.a > 1'}).limit(1)") == ["mongo_where_operator"]
    assert _mongo("db.orders.aggregate([{$match: {}}, {$out: 'archive'}])") == ["mongo_aggregate_out_merge"]
    assert _mongo("db.orders.aggregate([{$merge: {into: 'x'}}])") == ["mongo_aggregate_out_merge"]
    assert _mongo("db.orders.aggregate([{$match: {}}])") == []
