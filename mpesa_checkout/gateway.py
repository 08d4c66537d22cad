"""
M-Pesa C2B single-stage payment client.

One outbound call per charge, no retries. Every outcome, including
timeouts and transport errors, comes back as a ``GatewaySuccess`` or a
``GatewayFailure``; nothing is raised to the caller.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
import structlog

logger = structlog.get_logger(__name__)

COUNTRY_PREFIX = "258"
SUCCESS_STATUS = 201
PAYMENT_PATH = "/ipg/v1x/c2bPayment/singleStage/"
ORIGIN = "developer.mpesa.vm.co.mz"


@dataclass(frozen=True)
class GatewaySuccess:
    transaction_id: str
    conversation_id: str
    response_code: str
    response_desc: str


@dataclass(frozen=True)
class GatewayFailure:
    status_code: int
    error_body: Any


GatewayResult = Union[GatewaySuccess, GatewayFailure]


def format_phone_number(phone: str) -> str:
    """Mozambique MSISDN in 258XXXXXXXXX form."""
    phone = "".join(phone.split()).lstrip("+")
    return phone if phone.startswith(COUNTRY_PREFIX) else f"{COUNTRY_PREFIX}{phone}"


class MpesaGateway:
    def __init__(
        self,
        api_host: str,
        bearer_token: str,
        service_provider_code: str,
        port: int = 18352,
        timeout: float = 30.0,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = f"https://{api_host}:{port}{PAYMENT_PATH}"
        self.service_provider_code = service_provider_code
        self._bearer_token = bearer_token
        self._http = http or httpx.Client(timeout=timeout)
        self.timeout = timeout

    def close(self) -> None:
        self._http.close()

    def charge(
        self,
        amount: float,
        phone: str,
        transaction_ref: str,
        third_party_ref: str,
    ) -> GatewayResult:
        msisdn = format_phone_number(phone)
        payload = {
            "input_TransactionReference": transaction_ref,
            "input_CustomerMSISDN": msisdn,
            "input_Amount": _format_amount(amount),
            "input_ThirdPartyReference": third_party_ref,
            "input_ServiceProviderCode": self.service_provider_code,
        }
        log = logger.bind(transaction_reference=transaction_ref, amount=amount, phone=msisdn)
        log.info("mpesa_payment_initiated")

        try:
            response = self._http.post(
                self.endpoint,
                json=payload,
                headers={
                    "Origin": ORIGIN,
                    "Authorization": f"Bearer {self._bearer_token}",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            log.error("mpesa_payment_timeout", error=str(exc))
            return GatewayFailure(status_code=504, error_body="Payment gateway timed out")
        except httpx.HTTPError as exc:
            log.error("mpesa_payment_unreachable", error=str(exc))
            return GatewayFailure(status_code=502, error_body=str(exc) or "Payment gateway unreachable")

        body = _parse_body(response)
        if response.status_code == SUCCESS_STATUS and isinstance(body, dict):
            log.info("mpesa_payment_succeeded", response_desc=body.get("output_ResponseDesc"))
            return GatewaySuccess(
                transaction_id=body.get("output_TransactionID", ""),
                conversation_id=body.get("output_ConversationID", ""),
                response_code=body.get("output_ResponseCode", ""),
                response_desc=body.get("output_ResponseDesc", ""),
            )

        # A non-error status that is not the documented 201 is still a failed charge.
        status_code = response.status_code if response.status_code >= 400 else 502
        log.error("mpesa_payment_failed", status_code=response.status_code, error=body)
        return GatewayFailure(status_code=status_code, error_body=body)


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
