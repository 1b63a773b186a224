import logging

from fastapi import FastAPI

# common module: models, ids, logging
from common import new_delivery_id, setup_logging
from common.models import NotificationRequest

# Logging via common (stdout, timestamps, service name)
setup_logging("notification-service")
logger = logging.getLogger(__name__)

app = FastAPI(title="Notification Service")


@app.post("/send")
def send(payload: NotificationRequest):
    # A real deployment hands this to an email provider. Here we log and accept.
    delivery_id = new_delivery_id()
    logger.info(
        "Notification %s to %s: %s (%d bytes)",
        delivery_id,
        payload.recipient,
        payload.subject,
        len(payload.html_body),
    )
    return {"status": "sent", "delivery_id": delivery_id}


@app.get("/health")
def health():
    return {"status": "ok"}
