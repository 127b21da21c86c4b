"""PyMySQL adapter for MultiDb."""

from multidb.adapters.pymysql.driver import PyMysqlDriver, parse_mysql_dsn

__all__ = ("PyMysqlDriver", "parse_mysql_dsn")
