'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
import json
import aws_cdk as cdk
import sys
from common_project_config import ProjectConfig, DEFAULT_ENVIRONMENT


import logging
# Setup logging.
logging.basicConfig(level=logging.INFO, stream=sys.stderr, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
_top_logger = logging.getLogger(__name__)
if not _top_logger.hasHandlers():
        _top_logger.addHandler(logging.StreamHandler(stream=sys.stderr))

from acorn_pups_iot.iot_app import create_stacks


#*****************************************
#* Init App
app = cdk.App()
# Get environment from context (dev or prod): cdk deploy -c environment=prod
environment_name = app.node.try_get_context("environment") or DEFAULT_ENVIRONMENT

#*****************************************
#* Collect Project Configuration
pr_config = ProjectConfig.create_from_file(environment_name=environment_name)
logging.getLogger().setLevel(pr_config.stack_config.log_level)
_top_logger.info(f"Deploying Acorn Pups IoT infrastructure to environment: {environment_name}")
_top_logger.info(json.dumps(pr_config.config_data, indent=3))

#*****************************************
#* Init Stacks (dependencies and tags are defined by create_stacks)
create_stacks(app, pr_config)

app.synth()
