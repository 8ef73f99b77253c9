from typing import List, Optional

from clinica.db.base import GeneralDocument as DbGeneralDocument
from clinica.domain.entities import GeneralDocument
from clinica.domain.interfaces import IGeneralDocumentRepository


class GeneralDocumentRepository(IGeneralDocumentRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, document_id: int) -> Optional[GeneralDocument]:
        db_document = self.db.query(DbGeneralDocument).filter_by(id=document_id).first()
        return self._to_domain(db_document) if db_document else None

    def list_all(self, doc_type: Optional[str] = None) -> List[GeneralDocument]:
        query = self.db.query(DbGeneralDocument)
        if doc_type:
            query = query.filter(DbGeneralDocument.type == doc_type)
        rows = query.order_by(
            DbGeneralDocument.created_at.desc(), DbGeneralDocument.id.desc()
        ).all()
        return [self._to_domain(d) for d in rows]

    def create(self, document: GeneralDocument) -> GeneralDocument:
        db_document = DbGeneralDocument(
            type=document.type,
            title=document.title,
            description=document.description or None,
            content=document.content or None,
            file_name=document.file_name or None,
            file_data=document.file_data or None,
            created_by=document.created_by,
            created_at=document.created_at,
        )
        self.db.add(db_document)
        self.db.flush()
        return self._to_domain(db_document)

    def delete(self, document_id: int) -> bool:
        db_document = self.db.query(DbGeneralDocument).filter_by(id=document_id).first()
        if not db_document:
            return False
        self.db.delete(db_document)
        self.db.flush()
        return True

    def _to_domain(self, db_document: DbGeneralDocument) -> GeneralDocument:
        return GeneralDocument(
            id=db_document.id,
            type=db_document.type,
            title=db_document.title,
            description=db_document.description,
            content=db_document.content,
            file_name=db_document.file_name,
            file_data=db_document.file_data,
            created_by=db_document.created_by,
            created_at=db_document.created_at,
        )
