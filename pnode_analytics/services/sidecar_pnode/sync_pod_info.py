import asyncio

from loguru import logger
from redis.asyncio import Redis

from pnode_analytics.services.sidecar_pnode.pnode_client import PNodeClient


async def sync_pods_once(
    redis: Redis,
    client: PNodeClient,
    redis_key: str,
    ttl: int,
) -> int:
    """Fetch the merged pod list once and cache it. Returns the pod count."""
    pods = await client.get_all_pods()
    if not pods.pods:
        logger.warning("Seed nodes returned no pods, keeping the previous snapshot")
        return 0

    await redis.set(redis_key, pods.model_dump_json(), ex=ttl)
    logger.info(f"Updated {len(pods.pods)} pods in Redis")
    return len(pods.pods)


async def sync_pod_info_task(
    redis: Redis,
    client: PNodeClient,
    redis_key: str,
    ttl: int,
    interval: int = 60,
):
    """Periodically refresh the cached pod list."""
    # Reset redis key
    await redis.delete(redis_key)

    while True:
        logger.info("Syncing pod list from seed nodes")
        try:
            await sync_pods_once(redis, client, redis_key, ttl)
        except Exception as e:
            logger.error(f"Error syncing pod list: {str(e)}")

        await asyncio.sleep(interval)
