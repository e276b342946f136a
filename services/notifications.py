from decimal import Decimal

from errors import NotificationError
from utils.emailer import send_email


class Mailer:
    """Sends the station a notice when an advertiser starts paying for a slot."""

    def send_payment_notice(self, to_email: str, station_name: str, amount_major: Decimal, payment_id: int):
        if not to_email:
            raise NotificationError(f"Station {station_name!r} has no contact email", payment_id=payment_id)

        subject = "A payment has been made to book an advertisement slot"
        body = f"{station_name} received {amount_major} from payment id: {payment_id}"
        html = f"<p>{station_name} received {amount_major} from the payment id: {payment_id}</p>"

        ok, err = send_email(to_email, subject, body, html=html)
        if not ok:
            raise NotificationError(f"Error sending email: {err}", payment_id=payment_id)
