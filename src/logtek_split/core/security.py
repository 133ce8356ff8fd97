"""Shopify App Proxy signature verification.

Requests reaching the service through the App Proxy carry a MAC in the query
string, under ``hmac`` or the older ``signature`` field. The exact bytes the
proxy signed vary with proxy configuration and API version (key ordering,
encoding strictness, whether the path is included), so the verifier tries a
fixed, ordered list of canonical messages and accepts the first match.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from operator import itemgetter
from urllib.parse import parse_qsl, quote, unquote_plus

logger = logging.getLogger(__name__)

MODERN_MAC_FIELD = "hmac"
LEGACY_MAC_FIELD = "signature"
MAC_FIELDS = (MODERN_MAC_FIELD, LEGACY_MAC_FIELD)
PATH_PREFIX_FIELD = "path_prefix"

ALGORITHM_HMAC_SHA256 = "hmac-sha256"
ALGORITHM_LEGACY_MD5 = "legacy-md5"

_LOG_DIGEST_CHARS = 8


class MalformedQueryError(ValueError):
    """Raised when a query string is not valid form-encoded data."""


@dataclass(frozen=True)
class SignedRequest:
    """Immutable view of one inbound proxied request.

    Attributes:
        path: Route path as seen by the local handler, without query.
        raw_query: Query string exactly as received.
        provided_mac: Token taken from the authentication field, or "".
        mac_field: Field the token came from (``hmac`` or ``signature``).
    """

    path: str
    raw_query: str
    provided_mac: str = ""
    mac_field: str | None = None

    @classmethod
    def from_raw(cls, path: str, raw_query: str) -> SignedRequest:
        """Build a request view, extracting the token from the raw query.

        ``hmac`` takes precedence over ``signature`` when both carry a value.
        """
        tokens: dict[str, str] = {}
        for segment in _split_segments(raw_query):
            raw_key, _, raw_value = segment.partition("=")
            key = unquote_plus(raw_key)
            if key in MAC_FIELDS and key not in tokens:
                tokens[key] = unquote_plus(raw_value)

        for field_name in MAC_FIELDS:
            token = tokens.get(field_name, "")
            if token:
                return cls(path=path, raw_query=raw_query, provided_mac=token, mac_field=field_name)
        return cls(path=path, raw_query=raw_query)

    @classmethod
    def from_url(cls, url: str) -> SignedRequest:
        """Build a request view from a path-and-query URL such as ``/prepare?a=1``."""
        path, _, raw_query = url.partition("?")
        return cls.from_raw(path or "/", raw_query)

    @property
    def is_legacy(self) -> bool:
        return self.mac_field == LEGACY_MAC_FIELD


@dataclass(frozen=True)
class ParsedQuery:
    """Working copy of a query string with the authentication fields removed.

    Attributes:
        segments: ``(raw_key, raw_segment)`` tuples in original order.
        pairs: Decoded ``(key, value)`` tuples in original order.
    """

    segments: tuple[tuple[str, str], ...]
    pairs: tuple[tuple[str, str], ...]

    def first(self, key: str) -> str | None:
        """Return the first decoded value for ``key`` if present."""
        for name, value in self.pairs:
            if name == key:
                return value
        return None


def _split_segments(raw_query: str) -> list[str]:
    return [segment for segment in raw_query.split("&") if segment]


def parse_query(raw_query: str) -> ParsedQuery:
    """Parse a raw query string, dropping the authentication fields.

    Empty segments are skipped and a bare ``key`` reads as ``key=""``.

    Args:
        raw_query: Query string as received, without the leading ``?``.

    Returns:
        The parsed working copy.

    Raises:
        MalformedQueryError: If any segment does not percent-decode to valid
            UTF-8.
    """
    segments: list[tuple[str, str]] = []
    pairs: list[tuple[str, str]] = []
    for segment in _split_segments(raw_query):
        try:
            decoded = parse_qsl(
                segment,
                keep_blank_values=True,
                strict_parsing=False,
                errors="strict",
            )
        except ValueError as exc:
            raise MalformedQueryError(f"Unparseable query segment {segment[:32]!r}") from exc
        if len(decoded) != 1:
            raise MalformedQueryError(f"Unparseable query segment {segment[:32]!r}")

        key, value = decoded[0]
        if key in MAC_FIELDS:
            continue
        segments.append((segment.partition("=")[0], segment))
        pairs.append((key, value))
    return ParsedQuery(segments=tuple(segments), pairs=tuple(pairs))


def strict_quote(value: str) -> str:
    """Percent-encode everything except ``A-Z a-z 0-9 - _ . ~``."""
    return quote(value, safe="")


def _sorted_encoded(query: ParsedQuery) -> str:
    ordered = sorted(query.pairs, key=itemgetter(0))
    return "&".join(f"{strict_quote(key)}={strict_quote(value)}" for key, value in ordered)


def _sorted_literal(query: ParsedQuery) -> str:
    ordered = sorted(query.segments, key=itemgetter(0))
    return "&".join(segment for _, segment in ordered)


def _original_order(query: ParsedQuery) -> str:
    return "&".join(segment for _, segment in query.segments)


def _concatenated(query: ParsedQuery) -> str:
    grouped: dict[str, list[str]] = {}
    for key, value in query.pairs:
        grouped.setdefault(key, []).append(value)
    return "".join(f"{key}={','.join(grouped[key])}" for key in sorted(grouped))


def _join_path(path: str, query: str) -> str:
    return f"{path}?{query}" if query else path


def proxy_path(prefix: str, path: str) -> str:
    """Return the path as the upstream proxy sees it, e.g. ``/apps/slug/prepare``."""
    return f"{prefix.rstrip('/')}{path}"


QueryBuilder = Callable[[ParsedQuery], str]
MessageBuilder = Callable[[SignedRequest, ParsedQuery, str], str]


@dataclass(frozen=True)
class CanonicalStrategy:
    """Named pure function producing one candidate canonical message.

    ``build`` receives the request, its parsed query and the proxy prefix.
    """

    name: str
    build: MessageBuilder


def _bare(builder: QueryBuilder) -> MessageBuilder:
    return lambda request, query, prefix: builder(query)


def _on_local_path(builder: QueryBuilder) -> MessageBuilder:
    return lambda request, query, prefix: _join_path(request.path, builder(query))


def _on_proxy_path(builder: QueryBuilder) -> MessageBuilder:
    return lambda request, query, prefix: _join_path(
        proxy_path(prefix, request.path), builder(query)
    )


_QUERY_SHAPES: tuple[tuple[str, QueryBuilder], ...] = (
    ("sorted-encoded", _sorted_encoded),
    ("sorted-literal", _sorted_literal),
    ("original", _original_order),
)

CANONICAL_STRATEGIES: tuple[CanonicalStrategy, ...] = (
    *(CanonicalStrategy(f"query:{name}", _bare(builder)) for name, builder in _QUERY_SHAPES),
    *(
        CanonicalStrategy(f"local-path:{name}", _on_local_path(builder))
        for name, builder in _QUERY_SHAPES
    ),
    *(
        CanonicalStrategy(f"proxy-path:{name}", _on_proxy_path(builder))
        for name, builder in _QUERY_SHAPES
    ),
    CanonicalStrategy("query:concatenated", _bare(_concatenated)),
)


def _hmac_sha256(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _legacy_md5(secret: str, message: str) -> str:
    return hashlib.md5((secret + message).encode("utf-8")).hexdigest()


def _short(value: str) -> str:
    return value[:_LOG_DIGEST_CHARS]


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification, with the matching strategy for diagnostics."""

    valid: bool
    strategy: str | None = None
    algorithm: str | None = None

    def __bool__(self) -> bool:
        return self.valid


REJECTED = VerificationResult(valid=False)


class ProxySignatureVerifier:
    """Verify App Proxy signatures against a shared secret.

    Args:
        secret: App Proxy shared secret. An empty secret rejects every request.
        proxy_prefix: Mount prefix of the proxy, e.g. ``/apps/logtek-split``.
            When empty, the request's ``path_prefix`` parameter is used.
        strategies: Ordered canonical message strategies to try.
    """

    def __init__(
        self,
        secret: str,
        proxy_prefix: str = "",
        strategies: tuple[CanonicalStrategy, ...] = CANONICAL_STRATEGIES,
    ) -> None:
        self._secret = secret
        self.proxy_prefix = proxy_prefix
        self.strategies = strategies

    def _algorithms_for(
        self, request: SignedRequest
    ) -> Iterator[tuple[str, Callable[[str, str], str]]]:
        yield ALGORITHM_HMAC_SHA256, _hmac_sha256
        if request.is_legacy:
            yield ALGORITHM_LEGACY_MD5, _legacy_md5

    def candidate_messages(
        self, request: SignedRequest, query: ParsedQuery
    ) -> list[tuple[str, str]]:
        """Return ``(strategy name, message)`` pairs in evaluation order."""
        prefix = self.proxy_prefix or query.first(PATH_PREFIX_FIELD) or ""
        return [(strategy.name, strategy.build(request, query, prefix)) for strategy in self.strategies]

    def evaluate(self, request: SignedRequest) -> VerificationResult:
        """Verify ``request`` and report which strategy matched, if any.

        Every failure mode (missing secret, missing token, malformed query, no
        matching candidate) yields a rejected result; nothing is raised.
        """
        if not self._secret:
            logger.error(
                "App Proxy secret is not configured; rejecting request to %s",
                request.path,
            )
            return REJECTED

        if not request.provided_mac:
            logger.info("Missing App Proxy signature on request to %s", request.path)
            return REJECTED

        try:
            query = parse_query(request.raw_query)
        except MalformedQueryError as exc:
            logger.info("Rejecting request to %s: %s", request.path, exc)
            return REJECTED

        provided = request.provided_mac.encode("utf-8")
        messages = self.candidate_messages(request, query)
        for algorithm, compute in self._algorithms_for(request):
            for name, message in messages:
                digest = compute(self._secret, message)
                matched = hmac.compare_digest(digest.encode("utf-8"), provided)
                logger.debug(
                    "[Proxy %s] shape=%s base=%r d8=%s p8=%s ok=%s",
                    algorithm,
                    name,
                    message,
                    _short(digest),
                    _short(request.provided_mac),
                    matched,
                )
                if matched:
                    return VerificationResult(valid=True, strategy=name, algorithm=algorithm)

        logger.info("No App Proxy signature candidate matched for %s", request.path)
        return REJECTED

    def verify(self, request: SignedRequest) -> bool:
        """Return True if ``request`` carries a valid App Proxy signature."""
        return self.evaluate(request).valid


def verify(request: SignedRequest, secret: str, proxy_prefix: str = "") -> bool:
    """Functional form of :meth:`ProxySignatureVerifier.verify`."""
    return ProxySignatureVerifier(secret, proxy_prefix).verify(request)
