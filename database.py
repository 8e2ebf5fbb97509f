import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from errors import PersistenceError
from evaluator import ScoreStep
from schemas import ApplicantProfile, AssessmentSummary, EligibilityResult, StoredAssessment


def _col_exists(conn, table: str, col: str) -> bool:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(c["name"] == col for c in cols)


def migrate_db(conn):
    """
    Applies migrations safely for existing DBs.
    """
    if not _col_exists(conn, "loan_assessments", "source"):
        conn.execute("ALTER TABLE loan_assessments ADD COLUMN source TEXT NOT NULL DEFAULT 'ai'")
        conn.commit()

    if not _col_exists(conn, "loan_assessments", "breakdown_json"):
        conn.execute("ALTER TABLE loan_assessments ADD COLUMN breakdown_json TEXT NOT NULL DEFAULT '[]'")
        conn.commit()


class AssessmentStore:
    """Append-only sqlite store of loan assessments, keyed by user id."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)

    def get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        conn = self.get_conn()
        cur = conn.cursor()

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS loan_assessments (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                monthly_income REAL NOT NULL,
                employment_type TEXT NOT NULL,
                employment_duration_months INTEGER NOT NULL,
                existing_loans_json TEXT NOT NULL DEFAULT '[]',
                credit_score INTEGER,
                loan_amount_requested REAL NOT NULL,
                loan_purpose TEXT NOT NULL,
                eligibility_score INTEGER NOT NULL,
                recommended_amount REAL NOT NULL,
                risk_level TEXT NOT NULL,
                assessment_json TEXT NOT NULL,
                source TEXT NOT NULL DEFAULT 'ai',
                breakdown_json TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_loan_assessments_user
            ON loan_assessments (user_id, created_at)
            """
        )
        conn.commit()

        # apply migrations AFTER base tables exist
        migrate_db(conn)

        conn.close()

    def save(
        self,
        user_id: str,
        profile: ApplicantProfile,
        result: EligibilityResult,
        breakdown: Sequence[ScoreStep] = (),
    ) -> str:
        assessment_id = uuid.uuid4().hex
        existing_loans = [loan.model_dump(by_alias=True) for loan in profile.existing_loans]
        steps = [
            {"label": s.label, "delta": s.delta, "score_after": s.score_after, "note": s.note}
            for s in breakdown
        ]

        try:
            conn = self.get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO loan_assessments (
                        id, user_id, monthly_income, employment_type, employment_duration_months,
                        existing_loans_json, credit_score, loan_amount_requested, loan_purpose,
                        eligibility_score, recommended_amount, risk_level, assessment_json,
                        source, breakdown_json, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        assessment_id,
                        str(user_id),
                        profile.monthly_income,
                        profile.employment_type,
                        profile.employment_duration_months,
                        json.dumps(existing_loans),
                        profile.credit_score,
                        profile.loan_amount_requested,
                        profile.loan_purpose,
                        result.eligibility_score,
                        result.recommended_amount,
                        result.risk_level,
                        result.model_dump_json(by_alias=True),
                        result.source,
                        json.dumps(steps),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save assessment: {e}") from e

        return assessment_id

    def list_for_user(self, user_id: str, limit: int = 20) -> List[AssessmentSummary]:
        conn = self.get_conn()
        rows = conn.execute(
            """
            SELECT id, eligibility_score, risk_level, recommended_amount,
                   loan_amount_requested, loan_purpose, source, created_at
            FROM loan_assessments
            WHERE user_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (str(user_id), int(limit)),
        ).fetchall()
        conn.close()

        return [
            AssessmentSummary(
                assessment_id=row["id"],
                eligibility_score=row["eligibility_score"],
                risk_level=row["risk_level"],
                recommended_amount=row["recommended_amount"],
                loan_amount_requested=row["loan_amount_requested"],
                loan_purpose=row["loan_purpose"],
                source=row["source"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def get_for_user(self, user_id: str, assessment_id: str) -> Optional[StoredAssessment]:
        conn = self.get_conn()
        row = conn.execute(
            "SELECT * FROM loan_assessments WHERE id = ? AND user_id = ?",
            (assessment_id, str(user_id)),
        ).fetchone()
        conn.close()

        if not row:
            return None

        profile = ApplicantProfile(
            monthly_income=row["monthly_income"],
            employment_type=row["employment_type"],
            employment_duration_months=row["employment_duration_months"],
            existing_loans=json.loads(row["existing_loans_json"]),
            credit_score=row["credit_score"],
            loan_amount_requested=row["loan_amount_requested"],
            loan_purpose=row["loan_purpose"],
        )
        return StoredAssessment(
            assessment_id=row["id"],
            profile=profile,
            result=EligibilityResult.model_validate_json(row["assessment_json"]),
            created_at=row["created_at"],
        )
