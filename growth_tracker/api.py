"""Reference REST backend for the growth tracker.

Serves the endpoints the sync layer consumes and computes records with the
same engine as the offline path, so both produce identical records.
"""
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone

import pandas as pd
from flask import Flask, jsonify, request
from flask_cors import CORS

from . import config
from .age import validate_birth_date
from .errors import NotFoundError, ValidationError
from .models import Child, Gender, GrowthRecord, Metric, Parent
from .records import build_growth_record
from .stats import aggregate
from .storage import NIK_AVAILABLE_MESSAGE, NIK_FORMAT_MESSAGE, NIK_TAKEN_MESSAGE, is_valid_nik
from .who_reference import get_who_reference

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)
app.config["DB_FILE"] = config.DB_FILE
app.config["WHO_REFERENCE"] = None

SCHEMA = '''
CREATE TABLE IF NOT EXISTS parents
    (id INTEGER PRIMARY KEY AUTOINCREMENT,
     name TEXT NOT NULL,
     email TEXT NOT NULL);

CREATE TABLE IF NOT EXISTS children
    (id INTEGER PRIMARY KEY AUTOINCREMENT,
     name TEXT NOT NULL,
     dob TEXT NOT NULL,
     nik TEXT NOT NULL UNIQUE,
     gender TEXT NOT NULL,
     user_id INTEGER,
     created_at TEXT NOT NULL,
     updated_at TEXT NOT NULL);

CREATE TABLE IF NOT EXISTS growth_records
    (id INTEGER PRIMARY KEY AUTOINCREMENT,
     child_id INTEGER NOT NULL,
     date TEXT NOT NULL,
     height REAL NOT NULL,
     weight REAL NOT NULL,
     head_circumference REAL,
     age_in_months_at_record INTEGER NOT NULL,
     height_z_score REAL,
     input_by INTEGER,
     created_at TEXT NOT NULL,
     FOREIGN KEY (child_id) REFERENCES children(id));
'''

# ==================== DATABASE FUNCTIONS ====================

def init_db(db_file=None):
    """Initialize database with proper schema"""
    conn = sqlite3.connect(db_file or app.config["DB_FILE"])
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def get_conn():
    conn = sqlite3.connect(app.config["DB_FILE"])
    conn.executescript(SCHEMA)
    return conn


def who_reference():
    return app.config["WHO_REFERENCE"] or get_who_reference()

# ==================== HELPER FUNCTIONS ====================

def utc_now():
    return datetime.now(timezone.utc).isoformat()


def _none_if_nan(value):
    return None if value is None or pd.isna(value) else value


def _child_from_row(row):
    return Child(
        id=int(row["id"]),
        name=row["name"],
        dob=row["dob"],
        nik=row["nik"],
        gender=Gender.parse(row["gender"]),
        user_id=None if _none_if_nan(row["user_id"]) is None else int(row["user_id"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _record_from_row(row):
    z = _none_if_nan(row["height_z_score"])
    head = _none_if_nan(row["head_circumference"])
    input_by = _none_if_nan(row["input_by"])
    return GrowthRecord(
        id=int(row["id"]),
        child_id=int(row["child_id"]),
        date=row["date"],
        height=float(row["height"]),
        weight=float(row["weight"]),
        head_circumference=None if head is None else float(head),
        age_in_months_at_record=int(row["age_in_months_at_record"]),
        height_z_score=None if z is None else float(z),
        input_by=None if input_by is None else int(input_by),
        created_at=row["created_at"],
    )


def load_child(conn, child_id):
    df = pd.read_sql("SELECT * FROM children WHERE id = ?", conn, params=(child_id,))
    if df.empty:
        raise NotFoundError(f"Child {child_id} not found")
    return _child_from_row(df.iloc[0])


def load_records(conn, child_id):
    query = """
        SELECT * FROM growth_records
        WHERE child_id = ?
        ORDER BY date, id
    """
    df = pd.read_sql(query, conn, params=(child_id,))
    return [_record_from_row(row) for _, row in df.iterrows()]


def _fail(e):
    if isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, NotFoundError):
        status = 404
    else:
        logger.exception("Unhandled error")
        status = 500
    return jsonify({'success': False, 'error': str(e)}), status

# ==================== API ENDPOINTS ====================

@app.route('/api/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'timestamp': utc_now()})


@app.route('/api/children', methods=['GET'])
def get_children():
    """Get all children"""
    try:
        with closing(get_conn()) as conn:
            df = pd.read_sql("SELECT * FROM children ORDER BY id", conn)

        return jsonify({
            'success': True,
            'data': [_child_from_row(row).to_dict() for _, row in df.iterrows()]
        })
    except Exception as e:
        return _fail(e)


@app.route('/api/growth/<int:child_id>/growth-records', methods=['GET'])
def get_growth_records(child_id):
    """Get all growth records for a child, oldest first"""
    try:
        with closing(get_conn()) as conn:
            load_child(conn, child_id)
            records = load_records(conn, child_id)

        return jsonify({'success': True, 'data': [r.to_dict() for r in records]})
    except Exception as e:
        return _fail(e)


@app.route('/api/growth/<int:child_id>/growth-records', methods=['POST'])
def create_growth_record(child_id):
    """Create a growth record; age and Z-score are computed here, not taken from the body"""
    try:
        data = request.get_json(silent=True) or {}
        with closing(get_conn()) as conn:
            child = load_child(conn, child_id)

            record = build_growth_record(
                child,
                data.get('date'),
                data.get('height'),
                data.get('weight'),
                head_circumference=data.get('headCircumference'),
                input_by=data.get('inputBy'),
                reference=who_reference(),
            )

            created_at = utc_now()
            c = conn.cursor()
            c.execute("""
                INSERT INTO growth_records
                (child_id, date, height, weight, head_circumference, age_in_months_at_record,
                 height_z_score, input_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (child_id, record.date, record.height, record.weight, record.head_circumference,
                  record.age_in_months_at_record, record.height_z_score, record.input_by,
                  created_at))
            record = record.with_identity(c.lastrowid, created_at)
            conn.commit()

        return jsonify({
            'success': True,
            'message': 'Growth record added successfully',
            'data': record.to_dict()
        }), 201
    except Exception as e:
        return _fail(e)


@app.route('/api/growth/<int:child_id>/growth-stats', methods=['GET'])
def get_growth_stats(child_id):
    """Aggregate statistics over a child's growth records"""
    try:
        with closing(get_conn()) as conn:
            load_child(conn, child_id)
            records = load_records(conn, child_id)

        return jsonify({'success': True, 'data': aggregate(records).to_dict()})
    except Exception as e:
        return _fail(e)


@app.route('/api/growth/<int:child_id>/growth-chart', methods=['GET'])
def get_growth_chart(child_id):
    """Growth records plus the WHO height-for-age curves for the child's gender"""
    try:
        with closing(get_conn()) as conn:
            child = load_child(conn, child_id)
            records = load_records(conn, child_id)

        curves = who_reference().curves(Metric.HEIGHT, child.gender)
        return jsonify({
            'success': True,
            'data': {
                'records': [r.to_dict() for r in records],
                'whoCurves': [c.to_dict() for c in curves],
            }
        })
    except Exception as e:
        return _fail(e)


@app.route('/api/admin/add-child', methods=['POST'])
def add_child():
    """Register a child; the NIK must be unique"""
    try:
        data = request.get_json(silent=True) or {}
        name = (data.get('name') or '').strip()
        nik = str(data.get('nik') or '').strip()
        user_id = data.get('userId')

        if not all([name, data.get('dob'), nik, data.get('gender'), user_id]):
            raise ValidationError('Missing required fields')
        if not is_valid_nik(nik):
            raise ValidationError(NIK_FORMAT_MESSAGE)
        born = validate_birth_date(data['dob'])
        try:
            gender = Gender.parse(data['gender'])
        except ValueError as e:
            raise ValidationError(str(e)) from e

        with closing(get_conn()) as conn:
            c = conn.cursor()
            c.execute("SELECT 1 FROM children WHERE nik = ?", (nik,))
            if c.fetchone():
                return jsonify({'success': False, 'error': NIK_TAKEN_MESSAGE}), 409

            now = utc_now()
            c.execute("""
                INSERT INTO children (name, dob, nik, gender, user_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (name, born.isoformat(), nik, gender.value, int(user_id), now, now))
            child = load_child(conn, c.lastrowid)
            conn.commit()

        return jsonify({
            'success': True,
            'message': f'{name} registered successfully!',
            'data': child.to_dict()
        }), 201
    except Exception as e:
        return _fail(e)


@app.route('/api/admin/validate-nik/<nik>', methods=['GET'])
def validate_nik(nik):
    """Check NIK format and availability"""
    try:
        if not is_valid_nik(nik):
            return jsonify({'available': False, 'message': NIK_FORMAT_MESSAGE})

        with closing(get_conn()) as conn:
            c = conn.cursor()
            c.execute("SELECT 1 FROM children WHERE nik = ?", (nik,))
            exists = c.fetchone() is not None

        return jsonify({
            'available': not exists,
            'message': NIK_TAKEN_MESSAGE if exists else NIK_AVAILABLE_MESSAGE
        })
    except Exception as e:
        return _fail(e)


@app.route('/api/admin/parents', methods=['GET'])
def get_parents():
    """Search parents by name or email"""
    try:
        q = (request.args.get('q') or '').strip().lower()
        limit = min(max(request.args.get('limit', 20, type=int), 1), 100)

        query = "SELECT id, name, email FROM parents"
        params = ()
        if q:
            query += " WHERE lower(name) LIKE ? OR lower(email) LIKE ?"
            params = (f"%{q}%", f"%{q}%")
        query += " ORDER BY name LIMIT ?"
        with closing(get_conn()) as conn:
            df = pd.read_sql(query, conn, params=params + (limit,))

        parents = [Parent(id=int(row['id']), name=row['name'], email=row['email'])
                   for _, row in df.iterrows()]
        return jsonify({'success': True, 'data': [p.to_dict() for p in parents]})
    except Exception as e:
        return _fail(e)


@app.route('/api/admin/parents', methods=['POST'])
def create_parent():
    """Register a parent account"""
    try:
        data = request.get_json(silent=True) or {}
        name = (data.get('name') or '').strip()
        email = (data.get('email') or '').strip()
        if not name or not email:
            raise ValidationError('Missing required fields')

        with closing(get_conn()) as conn:
            c = conn.cursor()
            c.execute("INSERT INTO parents (name, email) VALUES (?, ?)", (name, email))
            parent_id = c.lastrowid
            conn.commit()

        return jsonify({
            'success': True,
            'data': {'id': parent_id, 'name': name, 'email': email}
        }), 201
    except Exception as e:
        return _fail(e)


@app.route('/api/who-standards', methods=['GET'])
def get_who_data():
    """Get WHO growth standards"""
    try:
        gender = Gender.parse(request.args.get('gender'))
        metric = Metric.parse(request.args.get('metric_type', 'lhfa'))
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    rows = who_reference().records(metric, gender)
    if not rows:
        return jsonify({
            'success': False,
            'error': 'WHO standards not found'
        }), 404

    return jsonify({
        'success': True,
        'data': rows,
        'axis_type': 'Month',
        'x_col': 'Month'
    })


def main():
    config.configure_logging()
    init_db()
    app.run(debug=False, port=5000)


if __name__ == '__main__':
    main()
