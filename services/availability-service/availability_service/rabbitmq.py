from shared.rabbitmq import RabbitPublisher

from .config import RABBIT_URL

publisher = RabbitPublisher(RABBIT_URL)
