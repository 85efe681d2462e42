#!/usr/bin/env python3
import logging

import aws_cdk as cdk
from dotenv import load_dotenv
from game_servers import GameServersConfig, GameServersStack

# Pick up settings from .env
load_dotenv()

logging.basicConfig(level=logging.INFO)

config = GameServersConfig.from_env()

app = cdk.App()

GameServersStack(app, config.project_name,
    config=config,
    env=cdk.Environment(
        region=config.aws_region
    ),
    description="Game servers on AWS ECS Fargate with CDK"
)

app.synth()
