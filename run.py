from pickem import create_app, db
from pickem.models import Fixture, Gameweek, GameweekScore, League, Pick, Standing, Team, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "League": League,
        "Team": Team,
        "Gameweek": Gameweek,
        "Fixture": Fixture,
        "Pick": Pick,
        "GameweekScore": GameweekScore,
        "Standing": Standing,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
