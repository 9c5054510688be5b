from app.models.schema.account import AccountEntry
from app.models.schema.album import AlbumEntry
from app.models.schema.token import TokenEntry


class Databases:
    account = AccountEntry
    token = TokenEntry
    album = AlbumEntry
