from content_client.errors import parse_response_model
from content_client.gateway import ApiGateway
from content_client.schemas.article import SecurityTip


class SecurityTipService:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def get_all(self) -> list[SecurityTip]:
        body = await self.gateway.request_json("GET", "/security-tips", auth=False)
        return [parse_response_model(SecurityTip, item) for item in body or []]

    async def get(self, tip_id: str) -> SecurityTip:
        body = await self.gateway.request_json("GET", f"/security-tips/{tip_id}", auth=False)
        return parse_response_model(SecurityTip, body)

    async def random(self) -> SecurityTip:
        body = await self.gateway.request_json("GET", "/security-tips/random", auth=False)
        return parse_response_model(SecurityTip, body)
