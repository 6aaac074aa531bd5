from pymongo import MongoClient

from cashplan import config


def get_db():
    client = MongoClient(config.MONGO_URI)
    return client[config.MONGO_DB]
