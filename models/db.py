from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()


def init_db(app):
    db.init_app(app)

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            _use_immediate_transactions(db.engine)


def _use_immediate_transactions(engine):
    # pysqlite defers BEGIN until the first write, so reads would run outside
    # the transaction. Take the write lock up front instead.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
