from urllib.parse import parse_qs

from starlette.types import ASGIApp, Receive, Scope, Send


class MethodOverrideMiddleware:
    """
    Lets HTML forms, which can only POST, reach DELETE routes.

    ``POST /files/<id>?_method=DELETE`` is dispatched as ``DELETE /files/<id>``.
    """

    def __init__(self, app: ASGIApp, param: str = "_method",
                 allowed_methods: tuple = ("DELETE",)):
        self.app = app
        self.param = param
        self.allowed_methods = allowed_methods

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "POST":
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            override = query.get(self.param, [""])[0].upper()
            if override in self.allowed_methods:
                scope = dict(scope, method=override)
        await self.app(scope, receive, send)
