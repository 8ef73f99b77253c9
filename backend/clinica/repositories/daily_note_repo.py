import datetime as dt
from typing import List, Optional

from clinica.db.base import DailyNote as DbDailyNote
from clinica.domain.entities import DailyNote
from clinica.domain.interfaces import IDailyNoteRepository


class DailyNoteRepository(IDailyNoteRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, note_id: int) -> Optional[DailyNote]:
        db_note = self.db.query(DbDailyNote).filter_by(id=note_id).first()
        return self._to_domain(db_note) if db_note else None

    def list_between(
        self, start: Optional[dt.date] = None, end: Optional[dt.date] = None
    ) -> List[DailyNote]:
        query = self.db.query(DbDailyNote)
        if start is not None:
            query = query.filter(DbDailyNote.date >= start)
        if end is not None:
            query = query.filter(DbDailyNote.date <= end)
        rows = query.order_by(DbDailyNote.date.desc(), DbDailyNote.id.desc()).all()
        return [self._to_domain(n) for n in rows]

    def create(self, note: DailyNote) -> DailyNote:
        db_note = DbDailyNote(
            type=note.type,
            title=note.title,
            value=note.value,
            date=note.date,
            author=note.author,
        )
        self.db.add(db_note)
        self.db.flush()
        return self._to_domain(db_note)

    def delete(self, note_id: int) -> bool:
        db_note = self.db.query(DbDailyNote).filter_by(id=note_id).first()
        if not db_note:
            return False
        self.db.delete(db_note)
        self.db.flush()
        return True

    def _to_domain(self, db_note: DbDailyNote) -> DailyNote:
        return DailyNote(
            id=db_note.id,
            type=db_note.type,
            title=db_note.title,
            value=db_note.value,
            date=db_note.date,
            author=db_note.author,
            created_at=db_note.created_at,
        )
