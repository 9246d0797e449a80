import base64

from niquests.auth import AuthBase

PRODUCT_ID = "SuperProductivity"


class HTTPBasicClientAuth(AuthBase):
    """
    HTTP Basic authentication plus the client identification header,
    set on every outgoing request.
    """

    def __init__(self, username: str, password: str, product: str = PRODUCT_ID) -> None:
        self.username = username
        self.password = password
        self.product = product

    def __eq__(self, other: object) -> bool:
        return (
            self.username == getattr(other, "username", None)
            and self.password == getattr(other, "password", None)
            and self.product == getattr(other, "product", None)
        )

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __repr__(self) -> str:
        return "%s(username=%r, password='***')" % (self.__class__.__name__, self.username)

    @property
    def authorization(self) -> str:
        token = base64.b64encode(
            f"{self.username or ''}:{self.password or ''}".encode("utf-8")
        )
        return "Basic " + token.decode("ascii")

    def __call__(self, r):
        r.headers["X-Requested-With"] = self.product
        r.headers["Authorization"] = self.authorization
        return r
