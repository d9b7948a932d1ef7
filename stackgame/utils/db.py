from sqlalchemy import event


def configure_sqlite(engine):
    """
    Let SQLAlchemy own SQLite transactions.

    pysqlite defers BEGIN until the first write, which breaks SAVEPOINT and
    lets two writers read the same row before either locks it. Emitting
    BEGIN IMMEDIATE ourselves takes the write lock up front, so statistics
    merges on SQLite are serialized like a row lock on PostgreSQL.

    The lock is taken for read-only transactions too, so reads such as the
    leaderboard wait behind an in-flight writer. Writes here are short, and
    other databases are not affected.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
