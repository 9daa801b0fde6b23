import os, shutil


def clean_folder(folder_path: str):
    """
    Deletes all files inside the folder if it exists.

    Args:
        folder_path (str): The path to the folder.
    """
    if os.path.exists(folder_path):
        shutil.rmtree(folder_path)  # Delete folder and all contents
    os.makedirs(folder_path, exist_ok=True)

