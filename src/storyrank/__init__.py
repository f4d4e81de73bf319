from dotenv import load_dotenv

# Load .env before config.settings is built so that both the settings
# object and the API key check (read from os.environ per request) see it.
load_dotenv()
