"""Shipping carrier catalogue.

An explicit mapping of carrier id to display name and tracking URL
template. Carriers are resolved at the boundary: unknown ids are rejected
rather than passed through as free text.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError


@dataclass(frozen=True)
class Carrier:
    id: str
    name: str
    tracking_url_template: str

    def tracking_url(self, tracking_number: str | None) -> str | None:
        if not tracking_number or not self.tracking_url_template:
            return None
        return f"{self.tracking_url_template}{tracking_number}"


CARRIERS: dict[str, Carrier] = {
    carrier.id: carrier
    for carrier in (
        Carrier("dhl", "DHL", "https://www.dhl.com/track?trackingNumber="),
        Carrier("ups", "UPS", "https://www.ups.com/track?trackingNumber="),
        Carrier("fedex", "FedEx", "https://www.fedex.com/apps/fedextrack/?trackingnumber="),
        Carrier("dpd", "DPD", "https://track.dpd.com/parcel/"),
        Carrier(
            "hermes",
            "Hermes",
            "https://www.myhermes.de/empfangen/sendungsverfolgung/sendungsinformation#",
        ),
        Carrier("gls", "GLS", "https://gls-group.eu/track/"),
        Carrier(
            "deutsche_post",
            "Deutsche Post",
            "https://www.deutschepost.de/sendung/simpleQuery.html?locale=en_GB&trackingId=",
        ),
        Carrier("other", "Other", ""),
    )
}


def resolve_carrier(value: str) -> Carrier:
    """Look a carrier up by id or display name, case-insensitively."""
    key = (value or "").strip().lower()
    if key in CARRIERS:
        return CARRIERS[key]
    for carrier in CARRIERS.values():
        if carrier.name.lower() == key:
            return carrier
    raise ValidationError({"carrier": [f"Unknown carrier: {value!r}"]})
