from injector import inject
from sqlalchemy.ext.asyncio import AsyncSession
from knowledge_engine.db.models import AgentModel

from knowledge_engine.repositories.db_repository import DbRepository


@inject
class AgentRepository(DbRepository[AgentModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(AgentModel, db)
