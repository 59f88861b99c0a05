"""SQLite 数据库初始化

PRAGMA 配置 + 事实表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    description    TEXT NOT NULL,
    lifecycle      TEXT NOT NULL DEFAULT 'OPEN'
                   CHECK (lifecycle IN ('OPEN', 'CLOSED', 'CANCELLED')),
    queue_position INTEGER CHECK (queue_position IS NULL OR queue_position >= 0),
    project        TEXT,
    tags           TEXT NOT NULL DEFAULT '[]',
    due_ts         TEXT,
    scheduled_ts   TEXT,
    wait_ts        TEXT,
    alloc_secs     INTEGER,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_queue_position ON tasks(queue_position) "
    "WHERE queue_position IS NOT NULL;",
    "CREATE INDEX IF NOT EXISTS idx_tasks_lifecycle ON tasks(lifecycle);",
]

# sessions 表 DDL（stopped=1 表示经由停止计时关闭，interval 补记的 session 为 0）
_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id     INTEGER NOT NULL,
    start_ts    TEXT NOT NULL,
    end_ts      TEXT,
    created_at  TEXT NOT NULL,
    stopped     INTEGER NOT NULL DEFAULT 0,

    CHECK (end_ts IS NULL OR end_ts > start_ts),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_SESSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_task_start ON sessions(task_id, start_ts);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_end ON sessions(end_ts);",
    # 全库至多一个 open session（不变量 1 的存储层兜底）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_single_open "
        "ON sessions((end_ts IS NULL)) WHERE end_ts IS NULL;"
    ),
]

# externals 表 DDL
_EXTERNALS_DDL = """
CREATE TABLE IF NOT EXISTS externals (
    external_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id      INTEGER NOT NULL,
    recipient    TEXT NOT NULL,
    note         TEXT,
    sent_at      TEXT NOT NULL,
    status       TEXT NOT NULL DEFAULT 'WAITING'
                 CHECK (status IN ('WAITING', 'RETURNED')),
    returned_at  TEXT,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_EXTERNALS_INDEXES = [
    # 每个任务至多一条 WAITING 记录
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_externals_waiting "
        "ON externals(task_id) WHERE status = 'WAITING';"
    ),
    "CREATE INDEX IF NOT EXISTS idx_externals_recipient ON externals(recipient);",
]

# annotations 表 DDL
_ANNOTATIONS_DDL = """
CREATE TABLE IF NOT EXISTS annotations (
    annotation_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id        INTEGER NOT NULL,
    session_id     INTEGER,
    note           TEXT NOT NULL,
    entry_ts       TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id),
    FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE SET NULL
);
"""

_ANNOTATIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_annotations_task ON annotations(task_id, entry_ts);",
    "CREATE INDEX IF NOT EXISTS idx_annotations_session ON annotations(session_id);",
]

# events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id    TEXT NOT NULL UNIQUE,
    task_id     INTEGER NOT NULL,
    ts          TEXT NOT NULL,
    type        TEXT NOT NULL,
    payload     TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_task_ts ON events(task_id, ts);",
    "CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);",
]

# stage_map 表 DDL（用户覆盖的分类规则，叠加在默认表之上）
_STAGE_MAP_DDL = """
CREATE TABLE IF NOT EXISTS stage_map (
    tier         TEXT NOT NULL,
    queued       INTEGER NOT NULL DEFAULT -1,
    has_history  INTEGER NOT NULL DEFAULT -1,
    status       TEXT NOT NULL,
    sort_order   INTEGER NOT NULL DEFAULT 0,
    color        TEXT,

    PRIMARY KEY (tier, queued, has_history)
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_SESSIONS_DDL)
    await conn.execute(_EXTERNALS_DDL)
    await conn.execute(_ANNOTATIONS_DDL)
    await conn.execute(_EVENTS_DDL)
    await conn.execute(_STAGE_MAP_DDL)

    # 创建索引
    for idx_sql in (
        _TASKS_INDEXES
        + _SESSIONS_INDEXES
        + _EXTERNALS_INDEXES
        + _ANNOTATIONS_INDEXES
        + _EVENTS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
