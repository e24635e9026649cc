import logging

from passlib.context import CryptContext

from storefront.auth import issue_delivery_token
from storefront.errors import AuthorizationError, NotFoundError, ValidationError
from storefront.models import DeliveryMan
from storefront.schemas import DeliveryAuthRequest
from storefront.store import DELIVERY_MEN_KEY, Store, delivery_key

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class DeliveryService:
    def __init__(self, store: Store):
        self.store = store

    async def authenticate(self, data: DeliveryAuthRequest) -> tuple[DeliveryMan, str]:
        """Signup or login. Returns the worker and a fresh delivery token."""
        if data.action == "signup":
            man = await self.signup(data)
        else:
            man = await self.login(data.phone, data.password)
        return man, issue_delivery_token(man.id)

    async def signup(self, data: DeliveryAuthRequest) -> DeliveryMan:
        name = (data.name or "").strip()
        if not name:
            raise ValidationError("Name is required for signup", field="name")
        man = DeliveryMan(name=name, phone=data.phone, password=_pwd_context.hash(data.password))
        if not await self.store.set_json_nx(delivery_key(data.phone), man.to_json()):
            raise ValidationError("Phone number already registered", field="phone")
        await self.store.sadd(DELIVERY_MEN_KEY, man.id)
        logger.info("Registered delivery man %s", man.id)
        return man

    async def login(self, phone: str, password: str) -> DeliveryMan:
        data = await self.store.get_json(delivery_key(phone))
        if data is None:
            raise AuthorizationError()
        man = DeliveryMan.model_validate(data)
        if not _pwd_context.verify(password, man.password):
            raise AuthorizationError()
        return man

    async def list_delivery_men(self) -> list[DeliveryMan]:
        ids = await self.store.smembers(DELIVERY_MEN_KEY)
        keys = await self.store.scan_keys(delivery_key("*"))
        men = DeliveryMan.load_many(await self.store.get_many_json(keys))
        return [m for m in men if m.id in ids]

    async def get_by_id(self, delivery_man_id: str) -> DeliveryMan:
        # Records are keyed by phone, so lookup by id is a scan.
        for man in await self.list_delivery_men():
            if man.id == delivery_man_id:
                return man
        raise NotFoundError("Delivery man not found", id=delivery_man_id)
