from shopledger.auth import SESSION_USER_KEY, current_user, set_current_user
from shopledger.config import CONFIG_FILE_NAME, SESSION_DATA_DIR_KEY
from shopledger.ui import switch_data_dir


def test_switching_data_dir_signs_the_user_out(tmp_path, user):
    state = {}
    set_current_user(user, state)

    data_dir = switch_data_dir(str(tmp_path / "shop"), state, default_dir=tmp_path / "home")

    assert state[SESSION_DATA_DIR_KEY] == str(data_dir)
    assert (data_dir / CONFIG_FILE_NAME).exists()
    assert SESSION_USER_KEY not in state
    assert current_user(state) is None
