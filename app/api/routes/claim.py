from fastapi import APIRouter, Depends, Request, Response

from app.core.captcha import verify_captcha
from app.core.claim_validation import read_claim_address
from app.core.client_ip import client_ip_from_request
from app.core.rate_limit import RateLimiter, get_rate_limiter
from app.schemas.claim import ClaimResponse, InfoResponse
from app.services.payout_service import PayoutService

router = APIRouter(prefix="/api", tags=["Faucet"])


@router.post(
    "/claim",
    response_model=ClaimResponse,
    dependencies=[Depends(verify_captcha)],
    responses={
        400: {"model": ClaimResponse, "description": "Malformed claim request"},
        429: {"model": ClaimResponse, "description": "Rate limited, duplicate claim or captcha failure"},
        503: {"model": ClaimResponse, "description": "Ledger node unavailable"},
    },
)
async def claim(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Response:
    """Send the faucet payout to the address in the request body.

    The captcha gate runs first (as a dependency), then the body is parsed,
    then the rate limiter wraps the payout.

    Returns:
        Response: ``{"message": "Txhash: 0x..."}`` on success.
    """
    settings = request.app.state.settings
    address = await read_claim_address(request, max_body_bytes=settings.faucet.max_body_bytes)

    payout: PayoutService = request.app.state.payout_service
    if not limiter.enabled:
        return await payout.claim(address)

    client_ip = client_ip_from_request(request, limiter.proxy_count)
    return await limiter.check(address, client_ip, lambda: payout.claim(address))


@router.get("/info", response_model=InfoResponse)
def info(request: Request) -> InfoResponse:
    """Public faucet configuration for the frontend."""

    settings = request.app.state.settings
    return InfoResponse(
        account=settings.ledger.faucet_address or "",
        network=settings.ledger.network,
        symbol=settings.faucet.symbol,
        payout=str(settings.faucet.payout),
        hcaptcha_sitekey=settings.captcha.site_key,
    )
