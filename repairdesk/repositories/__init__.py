from repairdesk.repositories.agenda_items import InMemoryAgendaItemsRepository, PostgresAgendaItemsRepository
from repairdesk.repositories.chat_messages import InMemoryChatMessagesRepository, PostgresChatMessagesRepository
from repairdesk.repositories.identity_accounts import (
    InMemoryIdentityAccountsRepository,
    PostgresIdentityAccountsRepository,
)
from repairdesk.repositories.profiles import InMemoryProfilesRepository, PostgresProfilesRepository
from repairdesk.repositories.quotes import InMemoryQuotesRepository, PostgresQuotesRepository
from repairdesk.repositories.service_requests import (
    InMemoryServiceRequestsRepository,
    PostgresServiceRequestsRepository,
)

__all__ = [
    "InMemoryAgendaItemsRepository",
    "PostgresAgendaItemsRepository",
    "InMemoryChatMessagesRepository",
    "PostgresChatMessagesRepository",
    "InMemoryIdentityAccountsRepository",
    "PostgresIdentityAccountsRepository",
    "InMemoryProfilesRepository",
    "PostgresProfilesRepository",
    "InMemoryQuotesRepository",
    "PostgresQuotesRepository",
    "InMemoryServiceRequestsRepository",
    "PostgresServiceRequestsRepository",
]
